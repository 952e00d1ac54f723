"""Authentication schemas for requests and responses."""
from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field

from .base import CamelModel


class SignUpRequest(CamelModel):
    """Schema for email/password registration."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    image: Optional[str] = None


class SignInRequest(CamelModel):
    """Schema for email/password login."""
    email: EmailStr
    password: str


class UserResponse(CamelModel):
    """Schema for user responses."""
    id: str
    email: str
    name: str
    email_verified: bool
    image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SessionResponse(CamelModel):
    """Schema for session responses. The token itself is only sent as a cookie."""
    id: str
    user_id: str
    expires_at: datetime


class SignUpResponse(CamelModel):
    user: UserResponse


class SessionDataResponse(CamelModel):
    user: UserResponse
    session: SessionResponse


class SignOutResponse(CamelModel):
    success: bool = True


class VerifyEmailResponse(CamelModel):
    status: bool = True
