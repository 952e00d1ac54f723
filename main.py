from fastapi import FastAPI, Depends, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import os
from typing import Optional
import logging

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Local imports
from database import get_db, init_db
from models import User
from schemas import (
    ConversationCreate, ConversationUpdate, MessageCreate,
    ConversationResponse, MessageResponse, ConversationListResponse,
    ConversationDetailResponse, ConversationCreateResponse,
    ConversationUpdateResponse, ConversationDeleteResponse, MessageCreateResponse,
    SignUpRequest, SignInRequest, UserResponse, SessionResponse,
    SignUpResponse, SessionDataResponse, SignOutResponse, VerifyEmailResponse,
    DevPersonasResponse, HealthResponse
)
from services import ConversationService, StoreInconsistencyError, AuthService, Identity, PersonaService
from services.auth import SESSION_COOKIE_NAME, SESSION_EXPIRE_DAYS, FRONTEND_URL
from sqlalchemy.orm import Session


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables if they don't exist
    try:
        init_db()
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    yield


app = FastAPI(
    title="Chat API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
origins = os.getenv("ALLOWED_ORIGINS", FRONTEND_URL).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600
)


# Error responses are always {"error": "..."}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "issues": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures and hide their details from clients."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal Server Error"}
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat())


# Session resolution
def get_session_token(request: Request) -> Optional[str]:
    """Read the session token from the cookie, or a bearer header for non-browser clients."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token

    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


def get_identity(request: Request, db: Session = Depends(get_db)) -> Optional[Identity]:
    """Resolve the request to the authenticated identity, or None."""
    return AuthService.get_session(db, get_session_token(request))


def get_current_user(identity: Optional[Identity] = Depends(get_identity)) -> User:
    """Get the current user, rejecting requests without a valid session."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return identity.user


def require_development() -> None:
    """Hide developer tooling outside development."""
    if os.getenv("ENVIRONMENT", "development") == "production":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


# Conversation endpoints
@app.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ConversationListResponse:
    """List the authenticated user's conversations, most recently active first."""
    conversations = ConversationService.list_conversations(db=db, user_id=current_user.id)

    return ConversationListResponse(
        conversations=[ConversationResponse.model_validate(c) for c in conversations]
    )


@app.get("/conversations/{conversation_id}", response_model=ConversationDetailResponse)
def get_conversation(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ConversationDetailResponse:
    """Get a conversation with all of its messages."""
    conversation = ConversationService.get_conversation(
        db=db,
        conversation_id=conversation_id,
        user_id=current_user.id
    )

    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")

    messages = ConversationService.get_messages(db=db, conversation_id=conversation.id)

    return ConversationDetailResponse(
        conversation=ConversationResponse.model_validate(conversation),
        messages=[MessageResponse.model_validate(m) for m in messages]
    )


@app.post(
    "/conversations",
    response_model=ConversationCreateResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED
)
def create_conversation(
    conversation: Optional[ConversationCreate] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ConversationCreateResponse:
    """Create a conversation, optionally together with its first message."""
    db_conversation, db_message = ConversationService.create_conversation(
        db=db,
        user_id=current_user.id,
        conversation_data=conversation or ConversationCreate()
    )

    response = ConversationCreateResponse(conversation=ConversationResponse.model_validate(db_conversation))
    if db_message is not None:
        response.message = MessageResponse.model_validate(db_message)
    return response


@app.patch("/conversations/{conversation_id}", response_model=ConversationUpdateResponse)
def update_conversation(
    conversation_id: str,
    conversation_update: ConversationUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ConversationUpdateResponse:
    """Rename a conversation."""
    try:
        updated_conversation = ConversationService.update_conversation(
            db=db,
            conversation_id=conversation_id,
            user_id=current_user.id,
            conversation_update=conversation_update
        )
    except StoreInconsistencyError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if not updated_conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return ConversationUpdateResponse(conversation=ConversationResponse.model_validate(updated_conversation))


@app.delete("/conversations/{conversation_id}", response_model=ConversationDeleteResponse)
def delete_conversation(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ConversationDeleteResponse:
    """Delete a conversation and its messages."""
    deleted = ConversationService.delete_conversation(
        db=db,
        conversation_id=conversation_id,
        user_id=current_user.id
    )

    if not deleted:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return ConversationDeleteResponse(deleted=True)


@app.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageCreateResponse,
    status_code=status.HTTP_201_CREATED
)
def create_message(
    conversation_id: str,
    message: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> MessageCreateResponse:
    """Append a message to a conversation."""
    try:
        db_message = ConversationService.append_message(
            db=db,
            conversation_id=conversation_id,
            user_id=current_user.id,
            message_data=message
        )
    except StoreInconsistencyError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if not db_message:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return MessageCreateResponse(message=MessageResponse.model_validate(db_message))


# Authentication endpoints
@app.post("/api/auth/sign-up/email", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    user_data: SignUpRequest,
    db: Session = Depends(get_db)
) -> SignUpResponse:
    """Register a new user. The email must be verified before signing in."""
    if AuthService.get_user_by_email(db, user_data.email):
        raise HTTPException(
            status_code=422,
            detail="User already exists"
        )

    user = AuthService.create_user(db, user_data)

    token = AuthService.create_verification_token(db, user.email)
    AuthService.send_verification_email(user.email, token)

    return SignUpResponse(user=UserResponse.model_validate(user))


@app.post("/api/auth/sign-in/email", response_model=SessionDataResponse)
def sign_in(
    credentials: SignInRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
) -> SessionDataResponse:
    """Sign in with email and password and set the session cookie."""
    user = AuthService.authenticate_user(db, credentials.email, credentials.password)

    if not user:
        logger.warning(f"Failed sign-in attempt for {credentials.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email not verified"
        )

    db_session = AuthService.create_session(
        db,
        user,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent")
    )

    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=db_session.token,
        max_age=SESSION_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=os.getenv("ENVIRONMENT", "development") == "production"
    )

    logger.info(f"User {user.id} signed in")
    return SessionDataResponse(
        user=UserResponse.model_validate(user),
        session=SessionResponse.model_validate(db_session)
    )


@app.post("/api/auth/sign-out", response_model=SignOutResponse)
def sign_out(
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
) -> SignOutResponse:
    """End the current session."""
    token = get_session_token(request)
    if token:
        AuthService.revoke_session(db, token)

    response.delete_cookie(SESSION_COOKIE_NAME)
    return SignOutResponse(success=True)


@app.get("/api/auth/get-session", response_model=Optional[SessionDataResponse])
def get_session(identity: Optional[Identity] = Depends(get_identity)) -> Optional[SessionDataResponse]:
    """Return the current user and session, or null when signed out."""
    if identity is None:
        return None

    return SessionDataResponse(
        user=UserResponse.model_validate(identity.user),
        session=SessionResponse.model_validate(identity.session)
    )


@app.get("/api/auth/verify-email", response_model=VerifyEmailResponse)
def verify_email(token: str, db: Session = Depends(get_db)) -> VerifyEmailResponse:
    """Confirm an email address from the link sent at sign-up."""
    user = AuthService.verify_email(db, token)

    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token")

    return VerifyEmailResponse(status=True)


# Developer tooling
@app.get("/dev/personas", response_model=DevPersonasResponse, dependencies=[Depends(require_development)])
def list_dev_personas(db: Session = Depends(get_db)) -> DevPersonasResponse:
    """List the seeded dev personas with their activity counts."""
    return DevPersonasResponse(personas=PersonaService.list_personas(db))
