"""
ReMarket - Security Utilities
==============================
Password hashing, opaque session tokens, cookie settings and CSRF protection.
"""

import hmac
import hashlib
import secrets
from typing import Optional

from fastapi import Request, HTTPException
from werkzeug.security import generate_password_hash, check_password_hash

from config import settings


# ==========================================
# Passwords
# ==========================================

def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    if not password_hash or not password:
        return False
    return check_password_hash(password_hash, password)


# ==========================================
# Session Tokens
# ==========================================

def new_session_token() -> str:
    """Random opaque value stored in the session cookie."""
    return secrets.token_urlsafe(32)


def hash_session_token(token: str) -> str:
    """HMAC-SHA256 of the cookie value; only the digest is persisted."""
    return hmac.new(settings.SECRET_KEY.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()


# ==========================================
# Cookie Helpers
# ==========================================

def get_cookie_kwargs() -> dict:
    """Standard cookie settings for the session cookie."""
    return dict(
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
    )


# ==========================================
# CSRF
# ==========================================

def new_csrf_token() -> str:
    """Generate a new random CSRF token."""
    return secrets.token_urlsafe(32)


def csrf_check(request: Request, form_token: Optional[str] = None):
    """
    Verify CSRF token from cookie matches the one in header or form.
    Raises HTTPException(403) on mismatch.
    """
    if not settings.CSRF_ENABLED:
        return

    cookie_token = request.cookies.get("csrf_token")
    header_token = request.headers.get("X-CSRF-Token")
    token = header_token or form_token

    if not cookie_token or not token or not hmac.compare_digest(cookie_token, token):
        raise HTTPException(403, "CSRF token missing or invalid")
