"""Declarative base shared by all models."""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return str(uuid4())
