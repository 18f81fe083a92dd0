import os
from dotenv import load_dotenv

load_dotenv()

# -----------------------
# Logging
# -----------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -----------------------
# Odoo Config
# -----------------------
ODOO_URL = (os.getenv("ODOO_URL") or "").rstrip("/")
ODOO_DB = os.getenv("ODOO_DB")
ODOO_USER = os.getenv("ODOO_USER")
ODOO_PASSWORD = os.getenv("ODOO_PASSWORD")

ODOO_TIMEOUT = float(os.getenv("ODOO_TIMEOUT", "15"))
ODOO_REPORT_TIMEOUT = float(os.getenv("ODOO_REPORT_TIMEOUT", "20"))

QUOTATION_REPORT = "sale.report_saleorder"
INVOICE_REPORT = "account.report_invoice"

# Product used instead of the real order lines when a request is flagged as test
ODOO_TEST_PRODUCT_ID = int(os.getenv("ODOO_TEST_PRODUCT_ID", "9"))

# -----------------------
# Firebase Config
# -----------------------
FIREBASE_SERVICE_ACCOUNT_BASE64 = os.getenv("FIREBASE_SERVICE_ACCOUNT_BASE64")
FIREBASE_STORAGE_BUCKET = os.getenv("FIREBASE_STORAGE_BUCKET")

REQUESTS_COLLECTION = "requests"
COUNTER_COLLECTION = "meta"
COUNTER_DOCUMENT = "counters"
COUNTER_FIELD = "requests"

SIGNED_URL_DAYS = int(os.getenv("SIGNED_URL_DAYS", "7"))

# -----------------------
# Stripe Config
# -----------------------
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# -----------------------
# Email Config
# -----------------------
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Wenergy <noreply@wenergy-consulting.com>")
EMAIL_REPLY_TO = os.getenv("EMAIL_REPLY_TO", "office@wenergy-consulting.com")
FULFILLMENT_EMAIL = os.getenv("FULFILLMENT_EMAIL", "office@wenergy-consulting.com")

# Fixed documents attached to the confirmation email, "filename=url" separated by commas
LEGAL_ATTACHMENTS = [
    tuple(item.split("=", 1))
    for item in (os.getenv("LEGAL_ATTACHMENTS") or "").split(",")
    if "=" in item
]
DOWNLOAD_TIMEOUT = float(os.getenv("DOWNLOAD_TIMEOUT", "15"))

# -----------------------
# Lifecycle Config
# -----------------------
ORDER_CONFIRM_DELAY = float(os.getenv("ORDER_CONFIRM_DELAY", "3"))
INVOICE_POLL_ATTEMPTS = int(os.getenv("INVOICE_POLL_ATTEMPTS", "5"))
INVOICE_POLL_DELAY = float(os.getenv("INVOICE_POLL_DELAY", "3"))

if INVOICE_POLL_ATTEMPTS < 1:
    raise ValueError("INVOICE_POLL_ATTEMPTS must be at least 1")

PUBLIC_BASE_URL = (os.getenv("PUBLIC_BASE_URL") or "http://localhost:8000").rstrip("/")
SCAN_REQUIRE_TOKEN = os.getenv("SCAN_REQUIRE_TOKEN", "true").lower() in ("1", "true", "yes")

# -----------------------
# Cron / CORS Config
# -----------------------
CRON_SECRET = os.getenv("CRON_SECRET")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
