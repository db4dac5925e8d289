# core/security.py
# Password hashing and JWT handling.

import logging
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from recettes_api.core.config import Settings
from recettes_api.core.errors import UnauthorizedError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Get a logger instance
logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "Token invalide"
EXPIRED_TOKEN_MESSAGE = "Token expiré. Veuillez vous reconnecter."


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, settings: Settings, expires_delta: timedelta | None = None) -> str:
    """
    Creates a signed JWT carrying `data` plus an expiry claim.
    """
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(user, settings: Settings, expires_delta: timedelta | None = None) -> str:
    return create_access_token(
        {"sub": user.id, "id": user.id, "email": user.email, "nom": user.name},
        settings,
        expires_delta,
    )


def decode_access_token(token: str, settings: Settings) -> dict:
    """
    Verifies signature and expiry. Expired tokens and otherwise invalid tokens
    are rejected with different messages.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        logger.info("Expired auth token")
        raise UnauthorizedError(EXPIRED_TOKEN_MESSAGE)
    except JWTError:
        logger.warning("Invalid auth token")
        raise UnauthorizedError(INVALID_TOKEN_MESSAGE)
