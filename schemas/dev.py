"""Schemas for developer-only endpoints."""
from typing import List, Optional
from pydantic import Field

from .base import CamelModel


class DevPersonaStats(CamelModel):
    conversation_count: int = Field(..., ge=0)
    message_count: int = Field(..., ge=0)


class DevPersona(CamelModel):
    id: str
    name: str
    email: str
    email_verified: bool
    image: Optional[str] = None
    stats: DevPersonaStats
    credits: str = "$0.00"


class DevPersonasResponse(CamelModel):
    personas: List[DevPersona]
