from .conversations import ConversationService, StoreInconsistencyError
from .auth import AuthService, Identity
from .personas import PersonaService

__all__ = ["ConversationService", "StoreInconsistencyError", "AuthService", "Identity", "PersonaService"]
