"""
Auth Module - Service Layer
=============================
Registration, password login, and server-side session lifecycle.
"""

import logging
import re
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from common.helpers import now_utc, clean_str
from common.security import hash_password, verify_password, new_session_token, hash_session_token
from common.exceptions import ValidationError
from config.settings import SESSION_EXPIRE_MINUTES
from modules.user.models import User, UserSession, USERNAME_MAX_LENGTH, EMAIL_MAX_LENGTH

logger = logging.getLogger("remarket.auth")

EMAIL_REGEX = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


class AuthService:
    """Handles account creation, credential checks and session tokens."""

    def register(self, db: Session, username: str, email: str, password: str) -> User:
        """
        Create a new account.

        Raises:
            ValidationError for missing fields, bad email, or a taken username/email
        """
        username = clean_str(username)
        email = clean_str(email).lower()
        if not username or not email or not password:
            raise ValidationError("All fields are required")
        if not EMAIL_REGEX.fullmatch(email):
            raise ValidationError("Invalid email format")
        if len(username) > USERNAME_MAX_LENGTH or len(email) > EMAIL_MAX_LENGTH:
            raise ValidationError("Username or Email is too long")

        taken = db.query(User.id).filter(
            or_(User.username == username, User.email == email)
        ).first()
        if taken:
            raise ValidationError("Username or Email already exists")

        user = User(username=username, email=email, password_hash=hash_password(password))
        try:
            db.add(user)
            db.flush()
        except IntegrityError:
            # Race condition: another request registered the same name
            db.rollback()
            raise ValidationError("Username or Email already exists")
        logger.info(f"Registered user #{user.id} ({username})")
        return user

    def login(self, db: Session, username: str, password: str) -> Tuple[User, str]:
        """
        Verify credentials and open a session.

        Returns:
            (user, raw_token) - raw_token goes into the cookie, never into the DB

        Raises:
            ValidationError on bad credentials
        """
        user = db.query(User).filter(User.username == clean_str(username)).first()
        if not user or not verify_password(user.password_hash, password or ""):
            raise ValidationError("Invalid credentials")

        token = new_session_token()
        db.add(UserSession(
            user_id=user.id,
            token_hash=hash_session_token(token),
            expires_at=now_utc() + timedelta(minutes=SESSION_EXPIRE_MINUTES),
        ))
        db.flush()
        return user, token

    def logout(self, db: Session, token: Optional[str]) -> None:
        if not token:
            return
        db.query(UserSession).filter(
            UserSession.token_hash == hash_session_token(token)
        ).delete(synchronize_session=False)
        db.flush()

    def resolve_session(self, db: Session, token: Optional[str]) -> Optional[User]:
        """Map a cookie token to its user, ignoring expired sessions."""
        if not token:
            return None
        sess = db.query(UserSession).filter(
            UserSession.token_hash == hash_session_token(token),
            UserSession.expires_at > now_utc(),
        ).first()
        return sess.user if sess else None

    def purge_expired_sessions(self, db: Session) -> int:
        """Delete expired sessions. Caller commits."""
        deleted = db.query(UserSession).filter(
            UserSession.expires_at <= now_utc()
        ).delete(synchronize_session=False)
        db.flush()
        return deleted


# Singleton instance
auth_service = AuthService()
