# main.py
# Application factory for the recipe-sharing API.

import logging.config
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
import uvicorn
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Import the CORS middleware
from fastapi.middleware.cors import CORSMiddleware

# Import local modules
from recettes_api import models
from recettes_api.api import auth, recipes
from recettes_api.core.config import Settings, settings as default_settings
from recettes_api.core.errors import register_exception_handlers
from recettes_api.core.logging_middleware import StructuredLoggingMiddleware
from recettes_api.core.rate_limit import build_limiter
from recettes_api.db.session import create_db_engine, create_session_factory

# Get the logger instance
logger = logging.getLogger(__name__)

DOCS_URL = "/api-docs"


def configure_logging(config_path: str) -> None:
    if os.path.exists(config_path):
        logging.config.fileConfig(config_path, disable_existing_loggers=False)
    else:
        logging.basicConfig(level=logging.INFO)
        logger.warning(f"Logging config {config_path} not found, using basicConfig")


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = app.state.engine
    try:
        # Create all database tables if they don't exist
        models.Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.critical("Could not initialise the database", exc_info=True)
        raise
    logger.info(f"Database ready ({engine.url.render_as_string(hide_password=True)})")
    yield
    engine.dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    def __init__(self, app, relaxed_csp: bool = False):
        super().__init__(app)
        self.relaxed_csp = relaxed_csp

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if self.relaxed_csp and request.url.path.startswith(DOCS_URL):
            # Swagger UI pulls its assets from a CDN
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "img-src 'self' data: https://fastapi.tiangolo.com; "
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net"
            )
        else:
            response.headers["Content-Security-Policy"] = "default-src 'self'"
        return response


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build an application bound to its own database engine.
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="API de partage de recettes: recettes, commentaires, likes et comptes utilisateurs.",
        version=settings.VERSION,
        docs_url=DOCS_URL,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = create_db_engine(settings.DATABASE_URL)
    app.state.session_factory = create_session_factory(app.state.engine)

    app.state.limiter = build_limiter(settings)

    register_exception_handlers(app)

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )
    app.add_middleware(SecurityHeadersMiddleware, relaxed_csp=not settings.is_production)

    app.include_router(recipes.router, prefix="/recettes", tags=["Recettes"])
    app.include_router(auth.router, prefix="/utilisateurs", tags=["Utilisateurs"])

    @app.get("/", tags=["Root"])
    async def read_root():
        """
        Root endpoint to check if the API is running.
        """
        return {
            "success": True,
            "message": "Bienvenue sur l'API des recettes de cuisine",
            "version": settings.VERSION,
            "documentation": DOCS_URL,
            "endpoints": {
                "recettes": "/recettes",
                "utilisateurs": "/utilisateurs",
            },
        }

    return app


configure_logging(default_settings.LOGGING_CONFIG)

app = create_app()


def run() -> None:
    uvicorn.run(
        "recettes_api.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=not default_settings.is_production,
    )


if __name__ == "__main__":
    run()
