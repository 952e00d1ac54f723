"""Pydantic schemas for conversation and message requests and responses."""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import Field

from .base import CamelModel

MessageRole = Literal["user", "assistant", "system"]


class FirstMessage(CamelModel):
    """Message created together with a new conversation."""
    content: str = Field(..., min_length=1)


class ConversationCreate(CamelModel):
    """Schema for creating a conversation, optionally with its first message."""
    title: str = Field(default="", max_length=255)
    first_message: Optional[FirstMessage] = None


class ConversationUpdate(CamelModel):
    """Schema for renaming a conversation."""
    title: str = Field(..., min_length=1, max_length=255)


class MessageCreate(CamelModel):
    """Schema for appending a message to a conversation."""
    role: MessageRole
    content: str = Field(..., min_length=1)
    model: Optional[str] = None


class ConversationResponse(CamelModel):
    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime


class MessageResponse(CamelModel):
    id: str
    conversation_id: str
    role: MessageRole
    content: str
    model: Optional[str] = None
    created_at: datetime


class ConversationListResponse(CamelModel):
    conversations: List[ConversationResponse]


class ConversationDetailResponse(CamelModel):
    conversation: ConversationResponse
    messages: List[MessageResponse]


class ConversationCreateResponse(CamelModel):
    conversation: ConversationResponse
    message: Optional[MessageResponse] = None


class ConversationUpdateResponse(CamelModel):
    conversation: ConversationResponse


class ConversationDeleteResponse(CamelModel):
    deleted: bool


class MessageCreateResponse(CamelModel):
    message: MessageResponse
