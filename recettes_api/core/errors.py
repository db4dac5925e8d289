# core/errors.py
# Application error kinds and the exception handlers that turn them into the
# JSON error envelope: {"success": false, "message": ..., "details": ...}

import enum
import re
import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ApiError(Exception):
    """
    Base class for errors raised on purpose by the API.

    The kind decides the HTTP status; an explicit status_code overrides it.
    """
    kind = ErrorKind.INTERNAL
    default_message = "Erreur interne du serveur"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Any = None,
        status_code: Optional[int] = None,
        headers: Optional[dict] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        self.status_code = status_code or STATUS_BY_KIND[self.kind]
        self.headers = headers
        super().__init__(self.message)


class ValidationFailedError(ApiError):
    kind = ErrorKind.VALIDATION
    default_message = "Erreur de validation des données"


class InvalidIdentifierError(ValidationFailedError):
    def __init__(self, field: str, value: Any):
        super().__init__(f"Format invalide pour {field}: {value}")


class NotFoundError(ApiError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Ressource non trouvée"


class ConflictError(ApiError):
    kind = ErrorKind.CONFLICT
    default_message = "Donnée en double détectée"


class UnauthorizedError(ApiError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Accès non autorisé"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        super().__init__(message, details, headers={"WWW-Authenticate": "Bearer"})


# --- Validation error translation ---

# French messages for the pydantic error types that are not produced by our
# own validators (those already carry their message).
PYDANTIC_MESSAGES = {
    "missing": "Ce champ est obligatoire",
    "string_type": "Doit être une chaîne de caractères",
    "list_type": "Doit être une liste",
    "int_type": "Doit être un entier",
    "int_parsing": "Doit être un entier",
    "int_from_float": "Doit être un entier",
    "model_type": "Doit être un objet JSON",
    "model_attributes_type": "Doit être un objet JSON",
    "json_invalid": "Corps JSON invalide",
}


def _field_path(loc) -> str:
    """
    ("body", "ingredients", 1) -> "ingredients[1]"
    """
    parts = [p for p in loc if p not in ("body", "query", "path", "header")]
    path = ""
    for part in parts:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path or "body"


def _validation_message(error: dict) -> str:
    error_type = error.get("type", "")
    ctx = error.get("ctx") or {}
    if error_type in PYDANTIC_MESSAGES:
        return PYDANTIC_MESSAGES[error_type]
    if error_type == "greater_than_equal":
        return f"Doit être supérieur ou égal à {ctx.get('ge')}"
    if error_type == "less_than_equal":
        return f"Doit être inférieur ou égal à {ctx.get('le')}"
    return error.get("msg", "Valeur invalide")


def validation_details(errors) -> list:
    details = []
    for error in errors:
        value = error.get("input")
        # Never echo a whole request body back as the rejected value
        if error.get("type") == "missing":
            value = None
        details.append({
            "champ": _field_path(error.get("loc", ())),
            "message": _validation_message(error),
            "valeur": value,
        })
    return details


# --- Integrity errors ---

# SQLite: "UNIQUE constraint failed: users.email"
SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>.+)")
# PostgreSQL detail: 'Key (email)=(alice@example.com) already exists.'
POSTGRES_KEY = re.compile(r"Key \((?P<columns>[^)]+)\)=\((?P<values>.*)\) already exists")
INSERT_COLUMNS = re.compile(r"INSERT INTO \S+ \((?P<columns>[^)]+)\)", re.IGNORECASE)
POSTGRES_UNIQUE_VIOLATION = "23505"


def _bound_value(exc: IntegrityError, column: str) -> Any:
    params = exc.params
    if isinstance(params, (list, tuple)) and params and isinstance(params[0], (dict, list, tuple)):
        params = params[0]  # executemany: report the first row
    if isinstance(params, dict):
        return params.get(column)
    if isinstance(params, (list, tuple)):
        # Positional parameters line up with the INSERT column list
        match = INSERT_COLUMNS.search(exc.statement or "")
        if match:
            columns = [c.strip().strip('"') for c in match.group("columns").split(",")]
            if column in columns and columns.index(column) < len(params):
                return params[columns.index(column)]
    return None


def unique_violation_details(exc: IntegrityError) -> Optional[dict]:
    """
    {column: offending value} for a uniqueness violation, None for any
    other integrity failure (CHECK, NOT NULL, foreign key).
    """
    orig = exc.orig
    reason = str(orig)

    match = SQLITE_UNIQUE.search(reason)
    if match:
        columns = [c.strip().split(".")[-1] for c in match.group("columns").split(",")]
        return {column: _bound_value(exc, column) for column in columns}

    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == POSTGRES_UNIQUE_VIOLATION:
        match = POSTGRES_KEY.search(reason)
        if not match:
            return {}
        columns = [c.strip() for c in match.group("columns").split(",")]
        values = [v.strip() for v in match.group("values").split(",")]
        if len(values) != len(columns):
            values = [_bound_value(exc, column) for column in columns]
        return dict(zip(columns, values))

    return None


# --- Envelope ---

def error_envelope(request: Request, message: str, details: Any = None, exc: Optional[BaseException] = None) -> dict:
    body = {"success": False, "message": message, "details": details}
    settings = getattr(request.app.state, "settings", None)
    if exc is not None and settings is not None and not settings.is_production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def _respond(request, status_code, message, details=None, exc=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_envelope(request, message, details, exc)),
        headers=headers,
    )


# --- Handlers ---

async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return _respond(request, exc.status_code, exc.message, exc.details, exc, exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = validation_details(exc.errors())
    logger.debug(f"Validation failed on {request.url.path}: {details}")
    return _respond(request, status.HTTP_400_BAD_REQUEST, ValidationFailedError.default_message, details, exc)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    details = unique_violation_details(exc)
    if details is None:
        return await unhandled_error_handler(request, exc)
    logger.warning(f"Duplicate value on {request.url.path}: {details}")
    return _respond(request, status.HTTP_409_CONFLICT, ConflictError.default_message, details, exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = f"Route non trouvée: {request.url.path}"
    else:
        message = str(exc.detail)
    return _respond(request, exc.status_code, message, headers=getattr(exc, "headers", None))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'} on {request.url.path}")
    return _respond(
        request,
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Trop de requêtes. Veuillez réessayer plus tard.",
        {"limite": str(exc.detail)},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return _respond(request, status.HTTP_500_INTERNAL_SERVER_ERROR, ApiError.default_message, exc=exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
