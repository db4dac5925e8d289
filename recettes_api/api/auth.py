# api/auth.py
# Handles user registration, login, profile and the token dependencies.

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.orm import Session

# Import local modules
from recettes_api import crud
from recettes_api import schemas
from recettes_api.core.config import Settings
from recettes_api.core.errors import ConflictError, NotFoundError, UnauthorizedError
from recettes_api.core.rate_limit import limit_auth_attempts
from recettes_api.core.security import INVALID_TOKEN_MESSAGE, create_user_token, decode_access_token
from recettes_api.db.session import get_db

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)

MISSING_TOKEN_MESSAGE = "Accès non autorisé. Token manquant."
BAD_SCHEME_MESSAGE = "Format du token invalide. Utilisez: Bearer <token>"
BAD_CREDENTIALS_MESSAGE = "Email ou mot de passe incorrect"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Returns the token of an "Authorization: Bearer <token>" header value.
    """
    if not authorization:
        raise UnauthorizedError(MISSING_TOKEN_MESSAGE)
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise UnauthorizedError(BAD_SCHEME_MESSAGE)
    if not parts[1]:
        raise UnauthorizedError(INVALID_TOKEN_MESSAGE)
    return parts[1]


def identity_from_token(token: str, settings: Settings) -> schemas.TokenData:
    payload = decode_access_token(token, settings)
    user_id = payload.get("id") or payload.get("sub")
    if user_id is None:
        logger.error("Token without user id")
        raise UnauthorizedError(INVALID_TOKEN_MESSAGE)
    return schemas.TokenData(id=user_id, email=payload.get("email"), nom=payload.get("nom"))


# --- Dependencies for Getting the Current User ---

async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> schemas.TokenData:
    """
    Verifies the bearer token and returns the identity it carries.
    This function is a dependency that can be used to protect endpoints.
    """
    token = extract_bearer_token(authorization)
    identity = identity_from_token(token, settings)
    request.state.user = identity
    logger.debug(f"Authenticated user: {identity.email}")
    return identity


async def get_optional_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> Optional[schemas.TokenData]:
    """
    Like get_current_user, but never rejects the request: a missing or bad
    token simply leaves the request anonymous.
    """
    try:
        token = extract_bearer_token(authorization)
        identity = identity_from_token(token, settings)
    except UnauthorizedError:
        return None
    request.state.user = identity
    return identity


# --- Authentication Endpoints ---

@router.post(
    "/inscription",
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_auth_attempts)],
)
def register(
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Create an account and return a token for it.
    """
    if crud.get_user_by_email(db, email=user_in.email):
        logger.info(f"Registration refused, email already used: {user_in.email}")
        raise ConflictError("Un utilisateur avec cet email existe déjà")

    user = crud.create_user(db, user_in)
    logger.info(f"New user registered: {user.email}")
    return {
        "message": "Inscription réussie",
        "token": create_user_token(user, settings),
        "utilisateur": user,
    }


@router.post("/connexion", response_model=schemas.AuthResponse, dependencies=[Depends(limit_auth_attempts)])
def login(
    credentials: schemas.UserLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Log in with email and password and get an access token.
    """
    user = crud.authenticate_user(db, credentials.email, credentials.password)
    if user is None:
        logger.warning("Incorrect email or password")
        raise UnauthorizedError(BAD_CREDENTIALS_MESSAGE)
    return {
        "message": "Connexion réussie",
        "token": create_user_token(user, settings),
        "utilisateur": user,
    }


@router.get("/profil", response_model=schemas.Envelope[schemas.User])
def read_profile(
    db: Session = Depends(get_db),
    current_user: schemas.TokenData = Depends(get_current_user),
):
    """
    Profile of the user owning the token.
    """
    db_user = crud.get_user(db, user_id=current_user.id)
    if db_user is None:
        # Account removed after the token was issued
        logger.warning(f"User {current_user.id} from token no longer exists")
        raise NotFoundError("Utilisateur non trouvé")
    return {"data": db_user}


@router.get("", response_model=schemas.Envelope[List[schemas.User]])
def list_users(db: Session = Depends(get_db)):
    """
    List all users, without their password hashes.
    """
    return {"data": crud.get_users(db)}
