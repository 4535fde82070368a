# ======================================
# config.py
# (Loads storefront + payment environment variables)
# ======================================
import os
from decimal import Decimal
from dotenv import load_dotenv

# Load .env when running locally
load_dotenv()

# ----------------------
# App
# ----------------------
APP_NAME = "EdifyPub"
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
APP_URL = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")
ENVIRONMENT = os.getenv("ENVIRONMENT", "production")

SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24 * 7)))

# ----------------------
# Database
# ----------------------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./edifypub.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# ----------------------
# Paystack
# ----------------------
PAYSTACK_PUBLIC_KEY = os.getenv("PAYSTACK_PUBLIC_KEY", "")
PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY", "")
PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")

# ----------------------
# Flutterwave
# ----------------------
FLUTTERWAVE_PUBLIC_KEY = os.getenv("FLUTTERWAVE_PUBLIC_KEY", "")
FLUTTERWAVE_SECRET_KEY = os.getenv("FLUTTERWAVE_SECRET_KEY", "")
FLUTTERWAVE_SECRET_HASH = os.getenv("FLUTTERWAVE_SECRET_HASH", "")
FLUTTERWAVE_BASE_URL = os.getenv("FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3")

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "15"))
APP_LOGO_URL = os.getenv("APP_LOGO_URL", f"{APP_URL}/placeholder-logo.png")

# ----------------------
# Email (Resend)
# ----------------------
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
FROM_EMAIL = os.getenv("FROM_EMAIL", "noreply@edifybooks.com")

# ----------------------
# Publishing / background jobs
# ----------------------
SUBMISSION_FEE = Decimal(os.getenv("SUBMISSION_FEE", "5000.00"))
PENDING_PAYMENT_TTL_HOURS = int(os.getenv("PENDING_PAYMENT_TTL_HOURS", "24"))
SWEEPER_ENABLED = os.getenv("SWEEPER_ENABLED", "true").lower() == "true"
SWEEPER_INTERVAL_SECONDS = int(os.getenv("SWEEPER_INTERVAL_SECONDS", str(60 * 60)))

# ----------------------
# Payment constants
# ----------------------
DEFAULT_CURRENCY = "NGN"  # Nigerian Naira
SUPPORTED_CURRENCIES = ["NGN", "USD", "GBP", "EUR"]

PAYSTACK = "paystack"
FLUTTERWAVE = "flutterwave"
BANK_TRANSFER = "bank_transfer"

PAYMENT_METHODS = (PAYSTACK, FLUTTERWAVE, BANK_TRANSFER)
GATEWAY_PROVIDERS = (PAYSTACK, FLUTTERWAVE)

WEBHOOK_ENDPOINTS = {
    PAYSTACK: "/api/webhooks/paystack",
    FLUTTERWAVE: "/api/webhooks/flutterwave",
}

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
TRANSACTION_STATUSES = ("pending", "successful", "failed", "expired")
