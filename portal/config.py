import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql://localhost/av_portal")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Cloudflare R2 Configuration (signature images)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "av-portal")
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL")

# Dodo Payments Configuration
DODO_PAYMENTS_API_KEY = os.getenv("DODO_PAYMENTS_API_KEY")
DODO_PAYMENTS_WEBHOOK_SECRET = os.getenv("DODO_PAYMENTS_WEBHOOK_SECRET")
# "test_mode" or "live_mode" - default to test for safety
DODO_PAYMENTS_ENVIRONMENT = os.getenv("DODO_PAYMENTS_ENVIRONMENT", "test_mode")
# Pay-what-you-want product used for every invoice checkout
DODO_ADHOC_PRODUCT_ID = os.getenv("DODO_ADHOC_PRODUCT_ID")

# Frontend base URL for public approval / invoice links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "A/V Portal <billing@example.com>")

# All dates and clock times are entered in this zone
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/New_York")

# Billing defaults
DEFAULT_HOURLY_RATE = Decimal(os.getenv("DEFAULT_HOURLY_RATE", "75.00"))
APPROVAL_TOKEN_TTL_DAYS = int(os.getenv("APPROVAL_TOKEN_TTL_DAYS", "30"))
INVOICE_VIEW_TOKEN_TTL_DAYS = int(os.getenv("INVOICE_VIEW_TOKEN_TTL_DAYS", "90"))

# Public token endpoints are rate limited unless explicitly disabled (tests, local dev)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Browser origins allowed to call the API (comma-separated)
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]
