"""
User Module - Models
=====================
Marketplace user (buyer and seller at once) with a saved shipping profile,
and server-side login sessions.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base

# Column widths shared by the profile and the order shipping snapshot
NAME_MAX_LENGTH = 100
PHONE_MAX_LENGTH = 20
USERNAME_MAX_LENGTH = 50
EMAIL_MAX_LENGTH = 120


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # === Identity ===
    username = Column(String(USERNAME_MAX_LENGTH), unique=True, nullable=False, index=True)
    email = Column(String(EMAIL_MAX_LENGTH), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # === Shipping profile (defaults for checkout) ===
    real_name = Column(String(NAME_MAX_LENGTH), nullable=True)
    phone = Column(String(PHONE_MAX_LENGTH), nullable=True)
    address = Column(Text, nullable=True)

    # === Audit ===
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # === Relationships ===
    products = relationship("Product", back_populates="seller")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    @property
    def missing_shipping_fields(self) -> list:
        """Labels of blank shipping profile fields, in display order."""
        missing = []
        if not (self.real_name or "").strip():
            missing.append("Name")
        if not (self.address or "").strip():
            missing.append("Address")
        if not (self.phone or "").strip():
            missing.append("Phone")
        return missing

    def __repr__(self):
        return f"<User {self.username}>"


class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="sessions")
