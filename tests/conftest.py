"""Shared fixtures: an in-memory SQLite database wired into the app."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import get_db
from main import app
from models import Base, Conversation, Message, User
from services.auth import AuthService, SESSION_COOKIE_NAME


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_client(session_factory):
    """Build test clients, optionally authenticated with a session token."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    def _make_client(token: Optional[str] = None, raise_server_exceptions: bool = True) -> TestClient:
        client = TestClient(app, raise_server_exceptions=raise_server_exceptions)
        if token:
            client.cookies.set(SESSION_COOKIE_NAME, token)
        return client

    yield _make_client
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


def create_user(db, email: str, name: str = "Test User", verified: bool = True) -> User:
    user = User(email=email, name=name, email_verified=verified)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_conversation(db, user: User, title: str = "", updated_at: Optional[datetime] = None) -> Conversation:
    timestamp = updated_at or datetime(2024, 1, 1, tzinfo=timezone.utc)
    conversation = Conversation(user_id=user.id, title=title, created_at=timestamp, updated_at=timestamp)
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def add_message(db, conversation: Conversation, content: str, role: str = "user",
                created_at: Optional[datetime] = None) -> Message:
    message = Message(
        conversation_id=conversation.id,
        role=role,
        content=content,
        created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)


@pytest.fixture
def alice(db) -> User:
    return create_user(db, "alice@example.com", name="Alice")


@pytest.fixture
def bob(db) -> User:
    return create_user(db, "bob@example.com", name="Bob")


@pytest.fixture
def alice_client(db, alice, make_client) -> TestClient:
    return make_client(AuthService.create_session(db, alice).token)


@pytest.fixture
def bob_client(db, bob, make_client) -> TestClient:
    return make_client(AuthService.create_session(db, bob).token)
