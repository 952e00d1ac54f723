"""Developer persona service: listing and idempotent seeding of local test accounts."""
from datetime import timedelta
from typing import Dict, List
from uuid import UUID, uuid5
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.base import utcnow
from models.conversations import Conversation, Message
from models.users import User, Account
from schemas.dev import DevPersona, DevPersonaStats
from services.auth import AuthService, CREDENTIAL_PROVIDER

logger = logging.getLogger(__name__)

# Shared password for all dev personas. Only for local development.
DEV_PASSWORD = "password123"
DEV_EMAIL_DOMAIN = "dev.example.com"
DEV_ASSISTANT_MODEL = "gpt-4"

# Fixed namespace so persona ids are stable across seed runs
SEED_NAMESPACE = UUID("6f1c2a52-3a0e-4d8b-9a57-0c7c1e2b9d10")

DEV_PERSONAS = [
    {"name": "alice", "display_name": "Alice Developer", "email_verified": True, "has_sample_data": True},
    {"name": "bob", "display_name": "Bob Tester", "email_verified": True, "has_sample_data": False},
    {"name": "charlie", "display_name": "Charlie Unverified", "email_verified": False, "has_sample_data": False},
]

SAMPLE_CONVERSATIONS = [
    ("Planning a weekend trip", [
        "Can you suggest a two-day itinerary for Lisbon?",
        "Day one: Alfama and the castle in the morning, Baixa in the afternoon. Day two: Belém.",
        "What should I eat there?",
        "Try pastéis de nata in Belém and grilled sardines in any tasca.",
    ]),
    ("Python list comprehensions", [
        "How do I flatten a list of lists?",
        "Use a nested comprehension: [x for row in rows for x in row].",
    ]),
    ("Draft release notes", [
        "Summarize these changes for a changelog: faster search, new dark theme.",
        "Search is now noticeably faster, and a dark theme is available in settings.",
        "Make it more formal.",
        "This release improves search performance and introduces a dark theme.",
    ]),
]


def seed_id(name: str) -> str:
    """Deterministic id for seeded rows."""
    return str(uuid5(SEED_NAMESPACE, name))


def dev_email(name: str) -> str:
    return f"{name}@{DEV_EMAIL_DOMAIN}"


class PersonaService:
    """Service class for developer persona operations."""

    @staticmethod
    def list_personas(db: Session) -> List[DevPersona]:
        """List every dev persona with conversation and message counts."""
        users = db.query(User).filter(
            User.email.like(f"%@{DEV_EMAIL_DOMAIN}")
        ).order_by(User.email).all()

        personas = []
        for user in users:
            conversation_count = db.query(func.count(Conversation.id)).filter(
                Conversation.user_id == user.id
            ).scalar()
            message_count = db.query(func.count(Message.id)).join(
                Conversation, Message.conversation_id == Conversation.id
            ).filter(
                Conversation.user_id == user.id
            ).scalar()

            personas.append(DevPersona(
                id=user.id,
                name=user.name,
                email=user.email,
                email_verified=user.email_verified,
                image=user.image,
                stats=DevPersonaStats(
                    conversation_count=conversation_count or 0,
                    message_count=message_count or 0
                )
            ))

        return personas

    @staticmethod
    def reset_personas(db: Session) -> int:
        """Remove all dev persona users and everything they own."""
        users = db.query(User).filter(User.email.like(f"%@{DEV_EMAIL_DOMAIN}")).all()
        for user in users:
            conversation_ids = [c.id for c in user.conversations]
            if conversation_ids:
                db.query(Message).filter(
                    Message.conversation_id.in_(conversation_ids)
                ).delete(synchronize_session=False)
            db.delete(user)
        db.commit()

        logger.info(f"Removed {len(users)} dev personas")
        return len(users)

    @staticmethod
    def seed_personas(db: Session) -> Dict[str, int]:
        """
        Create the dev personas and their sample data.

        Safe to run repeatedly: rows are keyed by deterministic ids and only
        inserted when missing.
        """
        created = {"users": 0, "conversations": 0, "messages": 0}
        hashed_password = AuthService.hash_password(DEV_PASSWORD)
        now = utcnow()

        for persona in DEV_PERSONAS:
            user_id = seed_id(f"dev-user-{persona['name']}")
            email = dev_email(persona["name"])

            if db.query(User).filter(User.id == user_id).first() is None:
                db.add(User(
                    id=user_id,
                    email=email,
                    name=persona["display_name"],
                    email_verified=persona["email_verified"],
                    image=None,
                    created_at=now,
                    updated_at=now
                ))
                db.add(Account(
                    id=seed_id(f"account-{persona['name']}"),
                    user_id=user_id,
                    account_id=email,
                    provider_id=CREDENTIAL_PROVIDER,
                    password=hashed_password
                ))
                created["users"] += 1

            if not persona["has_sample_data"]:
                continue

            for i, (title, contents) in enumerate(SAMPLE_CONVERSATIONS):
                conversation_id = seed_id(f"{persona['name']}-conv-{i + 1}")
                if db.query(Conversation).filter(Conversation.id == conversation_id).first() is not None:
                    continue

                started = now - timedelta(days=len(SAMPLE_CONVERSATIONS) - i)
                last_activity = started + timedelta(minutes=len(contents))
                db.add(Conversation(
                    id=conversation_id,
                    user_id=user_id,
                    title=title,
                    created_at=started,
                    updated_at=last_activity
                ))
                created["conversations"] += 1

                for j, content in enumerate(contents):
                    role = "user" if j % 2 == 0 else "assistant"
                    db.add(Message(
                        id=seed_id(f"{persona['name']}-conv-{i + 1}-msg-{j + 1}"),
                        conversation_id=conversation_id,
                        role=role,
                        content=content,
                        model=DEV_ASSISTANT_MODEL if role == "assistant" else None,
                        created_at=started + timedelta(minutes=j + 1)
                    ))
                    created["messages"] += 1

        db.commit()

        logger.info(
            f"Seeded {created['users']} users, {created['conversations']} conversations, "
            f"{created['messages']} messages"
        )
        return created
