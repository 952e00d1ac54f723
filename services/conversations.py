"""Conversation service for ownership-scoped CRUD operations."""
from typing import Optional, List, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import desc, asc, update
import logging

from models.base import utcnow
from models.conversations import Conversation, Message
from schemas.conversations import ConversationCreate, ConversationUpdate, MessageCreate

logger = logging.getLogger(__name__)


class StoreInconsistencyError(Exception):
    """A write that should have touched a row touched none."""


class ConversationService:
    """
    Service class for conversation and message operations.

    Every lookup is scoped to the owning user. A conversation that exists but
    belongs to someone else is reported exactly like one that does not exist.
    """

    @staticmethod
    def list_conversations(db: Session, user_id: str) -> List[Conversation]:
        """Retrieve all conversations for a user, most recently active first."""
        return db.query(Conversation).filter(
            Conversation.user_id == user_id
        ).order_by(
            desc(Conversation.updated_at)
        ).all()

    @staticmethod
    def get_conversation(db: Session, conversation_id: str, user_id: str) -> Optional[Conversation]:
        """Retrieve a conversation by ID if it is owned by the user."""
        return db.query(Conversation).filter(
            Conversation.id == conversation_id,
            Conversation.user_id == user_id
        ).first()

    @staticmethod
    def get_messages(db: Session, conversation_id: str) -> List[Message]:
        """Retrieve the messages of a conversation in creation order."""
        return db.query(Message).filter(
            Message.conversation_id == conversation_id
        ).order_by(
            asc(Message.created_at)
        ).all()

    @staticmethod
    def create_conversation(
        db: Session,
        user_id: str,
        conversation_data: ConversationCreate
    ) -> Tuple[Conversation, Optional[Message]]:
        """
        Create a conversation and, optionally, its first user message.

        Both rows are committed in one transaction. On failure nothing is
        persisted and the error propagates.
        """
        now = utcnow()
        db_conversation = Conversation(
            user_id=user_id,
            title=conversation_data.title,
            created_at=now,
            updated_at=now
        )
        db_message = None

        try:
            db.add(db_conversation)
            db.flush()

            if conversation_data.first_message is not None:
                db_message = Message(
                    conversation_id=db_conversation.id,
                    role="user",
                    content=conversation_data.first_message.content,
                    created_at=now
                )
                db.add(db_message)

            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(db_conversation)
        if db_message is not None:
            db.refresh(db_message)

        logger.info(f"Created conversation {db_conversation.id} for user {user_id}")
        return db_conversation, db_message

    @staticmethod
    def update_conversation(
        db: Session,
        conversation_id: str,
        user_id: str,
        conversation_update: ConversationUpdate
    ) -> Optional[Conversation]:
        """
        Rename a conversation and bump its ``updated_at``.

        Returns None when the conversation is missing or not owned by the user.
        Raises StoreInconsistencyError when the row vanished between the
        ownership check and the update.
        """
        conversation = ConversationService.get_conversation(db, conversation_id, user_id)

        if not conversation:
            return None

        result = db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id, Conversation.user_id == user_id)
            .values(title=conversation_update.title, updated_at=utcnow())
        )

        if result.rowcount == 0:
            db.rollback()
            logger.warning(f"Update of conversation {conversation_id} touched no rows")
            raise StoreInconsistencyError("Failed to update conversation")

        db.commit()
        db.refresh(conversation)

        return conversation

    @staticmethod
    def delete_conversation(db: Session, conversation_id: str, user_id: str) -> bool:
        """Delete a conversation together with all of its messages."""
        conversation = ConversationService.get_conversation(db, conversation_id, user_id)

        if not conversation:
            return False

        try:
            db.query(Message).filter(
                Message.conversation_id == conversation_id
            ).delete(synchronize_session=False)
            db.delete(conversation)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Deleted conversation {conversation_id} for user {user_id}")
        return True

    @staticmethod
    def append_message(
        db: Session,
        conversation_id: str,
        user_id: str,
        message_data: MessageCreate
    ) -> Optional[Message]:
        """
        Append a message to a conversation and bump the conversation's ``updated_at``.

        The bump and the insert are committed together, so the new message is
        never visible next to a stale parent timestamp. The bump runs first:
        if the conversation vanished after the ownership check, nothing is
        inserted and StoreInconsistencyError is raised.
        """
        conversation = ConversationService.get_conversation(db, conversation_id, user_id)

        if not conversation:
            return None

        now = utcnow()
        db_message = Message(
            conversation_id=conversation_id,
            role=message_data.role,
            content=message_data.content,
            model=message_data.model,
            created_at=now
        )

        try:
            result = db.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=now)
            )
            if result.rowcount == 0:
                logger.warning(f"Conversation {conversation_id} disappeared while appending a message")
                raise StoreInconsistencyError("Failed to create message")

            db.add(db_message)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(db_message)

        return db_message
