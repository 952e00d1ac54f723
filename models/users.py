"""User and authentication models."""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base, generate_id, utcnow


class User(Base):
    """
    SQLAlchemy model for users.

    Stores profile information. Credentials live in ``accounts`` and
    active logins in ``sessions``.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_id, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, default="")
    email_verified = Column(Boolean, default=False, nullable=False)
    image = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    conversations = relationship(
        "Conversation", back_populates="user", cascade="all, delete-orphan"
    )


class Account(Base):
    """Login method for a user. Email/password accounts use provider ``credential``."""
    __tablename__ = "accounts"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(String, nullable=False)
    provider_id = Column(String, nullable=False)
    password = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="accounts")


class UserSession(Base):
    """Active login session, looked up by the token carried in the session cookie."""
    __tablename__ = "sessions"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String, unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="sessions")


class Verification(Base):
    """Pending email verification token."""
    __tablename__ = "verifications"

    id = Column(String, primary_key=True, default=generate_id)
    identifier = Column(String, nullable=False, index=True)
    value = Column(String, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
