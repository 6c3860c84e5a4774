"""
ReMarket - Centralized Configuration
=====================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
import sys
from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    DB_USER = os.getenv("DB_USER")
    DB_PASSWORD = os.getenv("DB_PASSWORD")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME")

    if not all([DB_USER, DB_PASSWORD, DB_HOST, DB_NAME]):
        print("[ERROR] Critical: Database config missing in .env (DATABASE_URL or DB_USER, DB_PASSWORD, DB_HOST, DB_NAME)")
        sys.exit(1)

    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"

# Max wait for a product row lock during checkout
LOCK_TIMEOUT_MS = int(os.getenv("LOCK_TIMEOUT_MS") or "5000")


# ==========================================
# 🔐 Security
# ==========================================
SECRET_KEY = os.getenv("SECRET_KEY")

if not SECRET_KEY:
    print("[ERROR] Critical: SECRET_KEY missing in .env")
    sys.exit(1)

SESSION_COOKIE = "session_id"
SESSION_EXPIRE_MINUTES = int(os.getenv("SESSION_EXPIRE_MINUTES") or str(60 * 24 * 7))  # 7 days

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")
CSRF_ENABLED = os.getenv("CSRF_ENABLED", "true").lower() == "true"


# ==========================================
# 📁 File Upload
# ==========================================
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "static/uploads")
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB
DEFAULT_IMAGE_MAX_SIZE = (800, 800)


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Session cleanup job
SESSION_PURGE_INTERVAL_MINUTES = 60
