"""
Auth Module - Dependencies
===========================
FastAPI dependencies for user authentication.
These are injected into route handlers via Depends(); the resolved User is
then passed explicitly into every service call.
"""

from fastapi import Request, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import SESSION_COOKIE
from common.exceptions import UnauthorizedError
from modules.auth.service import auth_service


def get_current_active_user(request: Request, db: Session = Depends(get_db)):
    """
    Identify the current user from the session cookie.
    Returns User object or None.
    """
    return auth_service.resolve_session(db, request.cookies.get(SESSION_COOKIE))


def require_login(user=Depends(get_current_active_user)):
    """Require an authenticated user. Raises 401 if not logged in."""
    if not user:
        raise UnauthorizedError()
    return user
