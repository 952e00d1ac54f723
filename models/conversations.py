"""Conversation and message models."""
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import Base, generate_id, utcnow


class Conversation(Base):
    """
    SQLAlchemy model for conversations.

    Each conversation belongs to exactly one user. ``updated_at`` is bumped
    whenever the conversation is renamed or a message is appended, and drives
    the ordering of the conversation list.
    """
    __tablename__ = "conversations"

    id = Column(String, primary_key=True, default=generate_id, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )

    __table_args__ = (
        Index("ix_conversations_user_id_updated_at", "user_id", "updated_at"),
    )


class Message(Base):
    """
    SQLAlchemy model for a single message in a conversation.

    Messages are immutable once written and only go away when their
    conversation is deleted.
    """
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=generate_id, index=True)
    conversation_id = Column(
        String, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    model = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")
