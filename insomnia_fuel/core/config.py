import os
import re

from dotenv import load_dotenv

# Loads .env from the project root
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./insomnia_fuel.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# Where the storefront lives (checkout redirects back here)
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173").rstrip("/")

# Payments
PAYMENT_PROVIDER = os.getenv("PAYMENT_PROVIDER", "mock" if IS_DEV else "stripe").strip().lower()
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_API_VERSION = os.getenv("STRIPE_API_VERSION", "2024-06-20")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "aud").strip().lower() or "aud"
MOCK_WEBHOOK_SECRET = os.getenv("MOCK_WEBHOOK_SECRET", "whsec_local_dev")

# Identity (Firebase ID tokens)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "").strip()
FIREBASE_CERTS_URL = os.getenv(
    "FIREBASE_CERTS_URL",
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com",
)
FIREBASE_CERTS_TIMEOUT_SECONDS = float(os.getenv("FIREBASE_CERTS_TIMEOUT_SECONDS", "5"))


def parse_admin_emails(raw: str) -> frozenset[str]:
    return frozenset(part.strip().lower() for part in re.split(r"[,\s]+", raw or "") if part.strip())


ADMIN_EMAILS = parse_admin_emails(os.getenv("ADMIN_EMAILS", ""))

# Media bucket (gallery)
GALLERY_FOLDER = os.getenv("GALLERY_FOLDER", "insomnia-fuel/gallery").strip().strip("/")
GALLERY_UPLOAD_URL_TTL_SECONDS = int(os.getenv("GALLERY_UPLOAD_URL_TTL_SECONDS", "900"))

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS:
    CORS_ORIGINS = [
        "http://localhost:5173",
        "https://insomnia-fuel.netlify.app",
        "https://insomniafuel.com.au",
    ]
