"""
FlowWing Audit Payments API -- Configuration

All configuration values with sensible defaults.
Override via environment variables or the systemd unit's EnvironmentFile.
"""

import os

# --- MySQL Database ---
MYSQL_HOST = os.environ.get("FLOWWING_DB_HOST", "127.0.0.1")
MYSQL_PORT = int(os.environ.get("FLOWWING_DB_PORT", "3306"))
MYSQL_USER = os.environ.get("FLOWWING_DB_USER", "flowwing")
# SECURITY: No hardcoded default -- must be set via environment variable or systemd unit
MYSQL_PASSWORD = os.environ.get("FLOWWING_DB_PASSWORD", "")
MYSQL_DATABASE = os.environ.get("FLOWWING_DB_NAME", "flowwing")
MYSQL_POOL_SIZE = int(os.environ.get("FLOWWING_DB_POOL_SIZE", "5"))

# --- API Settings ---
API_VERSION = "0.3.0"
API_HOST = os.environ.get("FLOWWING_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("FLOWWING_API_PORT", "8190"))
LOG_LEVEL = os.environ.get("FLOWWING_LOG_LEVEL", "INFO").upper()

# --- Public URLs (redirect targets handed to the payment provider) ---
PUBLIC_BASE_URL = os.environ.get("FLOWWING_PUBLIC_URL", "https://flowwing.app").rstrip("/")
SITE_HOME_PATH = "/"
AUDIT_THANK_YOU_PATH = "/audit/thank-you"
AUDIT_CHECKOUT_CANCEL_PATH = "/audit/start?canceled=true"

# --- Stripe ---
# SECURITY: No hardcoded defaults -- must be set via environment variable or systemd unit
STRIPE_SECRET_KEY = os.environ.get("FLOWWING_STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.environ.get("FLOWWING_STRIPE_WEBHOOK_SECRET", "")
STRIPE_API_VERSION = "2025-08-27.basil"
STRIPE_WEBHOOK_TOLERANCE_SECONDS = 300  # 5 minutes, same as Stripe's own libraries

# --- Social Media Audit product (flat price, one-time payment) ---
AUDIT_PRODUCT_NAME = "Social Media Audit"
AUDIT_PRODUCT_DESCRIPTION = (
  "Comprehensive analysis of your social media presence with actionable recommendations"
)
AUDIT_PRICE_CENTS_USD = 10000  # $100.00
AUDIT_CURRENCY = "usd"

# --- Post-checkout payment verification ---
# The provider's redirect can beat its own webhook; wait this long once, then re-check.
PAYMENT_VERIFICATION_RETRY_DELAY_SECONDS = float(
  os.environ.get("FLOWWING_PAYMENT_VERIFY_DELAY", "2.0")
)

# --- Orphaned checkout report ---
ORPHANED_PENDING_RECORD_AGE_SECONDS = 86400  # 24 hours
