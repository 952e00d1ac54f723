from .conversations import (
    ConversationCreate, ConversationUpdate, MessageCreate,
    ConversationResponse, MessageResponse, ConversationListResponse,
    ConversationDetailResponse, ConversationCreateResponse,
    ConversationUpdateResponse, ConversationDeleteResponse, MessageCreateResponse,
)
from .auth import (
    SignUpRequest, SignInRequest, UserResponse, SessionResponse,
    SignUpResponse, SessionDataResponse, SignOutResponse, VerifyEmailResponse,
)
from .dev import DevPersona, DevPersonaStats, DevPersonasResponse
from .health import HealthResponse

__all__ = ["ConversationCreate", "ConversationUpdate", "MessageCreate",
           "ConversationResponse", "MessageResponse", "ConversationListResponse",
           "ConversationDetailResponse", "ConversationCreateResponse",
           "ConversationUpdateResponse", "ConversationDeleteResponse", "MessageCreateResponse",
           "SignUpRequest", "SignInRequest", "UserResponse", "SessionResponse",
           "SignUpResponse", "SessionDataResponse", "SignOutResponse", "VerifyEmailResponse",
           "DevPersona", "DevPersonaStats", "DevPersonasResponse", "HealthResponse"]
