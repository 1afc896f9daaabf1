"""A/V work-order, approval and billing portal API"""

__version__ = "1.0.0"
