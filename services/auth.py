"""Authentication service for users, credential accounts, sessions and email verification."""
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional
import logging
import os
import secrets
from passlib.context import CryptContext
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from models.base import utcnow
from models.users import User, Account, UserSession, Verification
from schemas.auth import SignUpRequest


logger = logging.getLogger(__name__)

# Configuration
SECRET_KEY = os.getenv("AUTH_SECRET", "dev-secret-minimum-32-characters-long")
ALGORITHM = "HS256"
SESSION_EXPIRE_DAYS = int(os.getenv("SESSION_EXPIRE_DAYS", "7"))
VERIFICATION_EXPIRE_HOURS = 24
SESSION_COOKIE_NAME = "session_token"
CREDENTIAL_PROVIDER = "credential"
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Password hashing with Argon2
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


class Identity(NamedTuple):
    """The authenticated user and the session that authenticated them."""
    user: User
    session: UserSession


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuthService:
    """Service class for authentication operations."""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password."""
        return pwd_context.hash(password)

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get a user by email."""
        return db.query(User).filter(User.email == email.lower()).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def create_user(db: Session, user_data: SignUpRequest) -> User:
        """Create a new, unverified user with an email/password account."""
        email = user_data.email.lower()
        db_user = User(
            email=email,
            name=user_data.name,
            image=user_data.image,
            email_verified=False
        )
        db.add(db_user)
        db.flush()

        db.add(Account(
            user_id=db_user.id,
            account_id=email,
            provider_id=CREDENTIAL_PROVIDER,
            password=AuthService.hash_password(user_data.password)
        ))

        db.commit()
        db.refresh(db_user)

        logger.info(f"Registered user {db_user.id}")
        return db_user

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """Authenticate a user by email and password."""
        user = AuthService.get_user_by_email(db, email)
        if not user:
            return None

        account = db.query(Account).filter(
            Account.user_id == user.id,
            Account.provider_id == CREDENTIAL_PROVIDER
        ).first()
        if not account or not account.password:
            return None
        if not AuthService.verify_password(password, account.password):
            return None
        return user

    @staticmethod
    def create_session(
        db: Session,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> UserSession:
        """Start a new session for a user."""
        db_session = UserSession(
            user_id=user.id,
            token=secrets.token_urlsafe(32),
            expires_at=utcnow() + timedelta(days=SESSION_EXPIRE_DAYS),
            ip_address=ip_address,
            user_agent=user_agent
        )
        db.add(db_session)
        db.commit()
        db.refresh(db_session)

        return db_session

    @staticmethod
    def get_session(db: Session, token: Optional[str]) -> Optional[Identity]:
        """
        Resolve a session token to the authenticated identity.

        Returns None for a missing, unknown or expired token. Expired sessions
        are removed on sight.
        """
        if not token:
            return None

        db_session = db.query(UserSession).filter(UserSession.token == token).first()
        if db_session is None:
            return None

        if _as_utc(db_session.expires_at) <= utcnow():
            db.delete(db_session)
            db.commit()
            return None

        return Identity(user=db_session.user, session=db_session)

    @staticmethod
    def revoke_session(db: Session, token: str) -> bool:
        """Delete the session identified by a token."""
        deleted = db.query(UserSession).filter(UserSession.token == token).delete()
        db.commit()
        return deleted > 0

    @staticmethod
    def create_verification_token(db: Session, email: str) -> str:
        """Issue a signed email verification token and remember it."""
        expire = utcnow() + timedelta(hours=VERIFICATION_EXPIRE_HOURS)

        to_encode = {
            "sub": email.lower(),
            "exp": expire,
            "iat": utcnow(),
            "type": "email_verification"
        }
        token = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

        db.add(Verification(identifier=email.lower(), value=token, expires_at=expire))
        db.commit()

        return token

    @staticmethod
    def send_verification_email(email: str, token: str) -> None:
        """Deliver the verification link. Mail is written to the log."""
        url = f"{FRONTEND_URL}/verify-email?token={token}"
        logger.info(f"Verification email for {email}: {url}")

    @staticmethod
    def verify_email(db: Session, token: str) -> Optional[User]:
        """Mark a user's email as verified if the token is valid and outstanding."""
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            return None

        if payload.get("type") != "email_verification":
            return None

        email = payload.get("sub")
        verification = db.query(Verification).filter(
            Verification.identifier == email,
            Verification.value == token
        ).first()
        if verification is None:
            return None

        user = AuthService.get_user_by_email(db, email)
        if user is None:
            return None

        user.email_verified = True
        db.delete(verification)
        db.commit()
        db.refresh(user)

        return user
