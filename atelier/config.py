import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./atelier.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Session tokens (cookie or Bearer header)
ACCESS_TOKEN_COOKIE_NAME = os.getenv("ACCESS_TOKEN_COOKIE_NAME", "accessToken")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# CORS: origins allowed to send the session cookie
ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:5173").split(",") if o.strip()
]

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Atelier <noreply@atelier.local>")
# Where quotation decisions are reported; falls back to the sender address
ADMIN_NOTIFY_EMAIL = os.getenv("ADMIN_NOTIFY_EMAIL")

# Cloudflare R2 Configuration (receipts, attachments, reference images)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "atelier")
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL")
# Used when R2 is not configured (development, tests)
UPLOAD_DIR = os.getenv("UPLOAD_DIR", str(Path(__file__).resolve().parent.parent / "uploads"))

# Email templates (HTML with {{PLACEHOLDER}} variables)
TEMPLATES_DIR = os.getenv("TEMPLATES_DIR", str(Path(__file__).resolve().parent / "templates"))

# Tesseract language packs used for receipt OCR
OCR_LANGUAGES = os.getenv("OCR_LANGUAGES", "spa+eng")

# Visit booking: each visit blocks this many hours on either side of its start
VISIT_BLOCK_HOURS = int(os.getenv("VISIT_BLOCK_HOURS", "3"))
VISIT_SLOT_TIMES = [
    s.strip()
    for s in os.getenv(
        "VISIT_SLOT_TIMES",
        "08:00,09:00,10:00,11:00,12:00,13:00,14:00,15:00,16:00,17:00,18:00,19:00,20:00",
    ).split(",")
    if s.strip()
]

# Orders: share of the total that must be paid before production starts
DEPOSIT_THRESHOLD = float(os.getenv("DEPOSIT_THRESHOLD", "0.30"))
# Production window shown to customers, counted from the order start
PRODUCTION_DAYS = int(os.getenv("PRODUCTION_DAYS", "15"))

# Quotations: service used for accepted items with no catalog product
QUOTATION_DEFAULT_SERVICE_ID = int(os.getenv("QUOTATION_DEFAULT_SERVICE_ID", "1"))
DUPLICATE_ORDER_WINDOW_MINUTES = int(os.getenv("DUPLICATE_ORDER_WINDOW_MINUTES", "5"))

# Dashboard top items
DASHBOARD_TOP_LIMIT_DEFAULT = int(os.getenv("DASHBOARD_TOP_LIMIT_DEFAULT", "10"))
DASHBOARD_TOP_LIMIT_MAX = int(os.getenv("DASHBOARD_TOP_LIMIT_MAX", "50"))
