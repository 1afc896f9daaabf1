"""
Half-month billing periods.

Each month splits into the 1st-15th and the 16th-last day. Periods are
computed on organization-local calendar dates.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Optional

from ...utils.timezone import org_day_bounds, org_today, parse_org_datetime


class BillingPeriod:
    def __init__(self, start: date, end: date):
        self.start = start
        self.end = end

    def __eq__(self, other) -> bool:
        return isinstance(other, BillingPeriod) and (self.start, self.end) == (other.start, other.end)

    def __repr__(self) -> str:
        return f"BillingPeriod({self.start}, {self.end})"

    @property
    def key(self) -> str:
        return self.start.isoformat()

    @property
    def label(self) -> str:
        """'Jan 1-15, 2026'"""
        return f"{self.start.strftime('%b')} {self.start.day}-{self.end.day}, {self.start.year}"

    def utc_bounds(self) -> tuple[datetime, datetime]:
        """Half-open UTC interval covering every local day of the period"""
        return org_day_bounds(self.start, self.end)

    def stored_start(self) -> datetime:
        return parse_org_datetime(self.start.isoformat())

    def stored_end(self) -> datetime:
        return parse_org_datetime(self.end.isoformat())


def period_for_date(day: date) -> BillingPeriod:
    if day.day <= 15:
        return BillingPeriod(day.replace(day=1), day.replace(day=15))
    last = calendar.monthrange(day.year, day.month)[1]
    return BillingPeriod(day.replace(day=16), day.replace(day=last))


def current_period(today: Optional[date] = None) -> BillingPeriod:
    return period_for_date(today or org_today())


def next_period(today: Optional[date] = None) -> BillingPeriod:
    return period_for_date(current_period(today).end + timedelta(days=1))


def label_for_range(start: date, end: date) -> str:
    """Label an arbitrary range; half-month periods get the short form"""
    if start.year == end.year and start.month == end.month:
        return BillingPeriod(start, end).label
    return f"{start.strftime('%b')} {start.day}, {start.year} - {end.strftime('%b')} {end.day}, {end.year}"
