from .base import Base
from .conversations import Conversation, Message
from .users import User, Account, UserSession, Verification

__all__ = ["Base", "Conversation", "Message", "User", "Account", "UserSession", "Verification"]
