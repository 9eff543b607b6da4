"""
Application settings.
Everything is read once from the environment (and .env when present).
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


APP_NAME = os.getenv("APP_NAME", "PremiAds")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
DEBUG = _env_bool("DEBUG", "True")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Database
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "premiads")

# Store calls are bounded; a call that exceeds this is reported as failed
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

# JWT verification (tokens are issued by the identity provider)
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# Duplicate guard policy for submissions whose final outcome was "rejected"
ALLOW_RESUBMIT_AFTER_REJECTION = _env_bool("ALLOW_RESUBMIT_AFTER_REJECTION")

# Increment keys kept per wallet; older keys belong to grants long since issued
WALLET_APPLIED_KEYS_LIMIT = int(os.getenv("WALLET_APPLIED_KEYS_LIMIT", "200"))
