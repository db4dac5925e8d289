# db/session.py
# Builds the SQLAlchemy engine and session factory for an application
# instance, and the request dependency handing out sessions.

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are used from FastAPI's threadpool
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency to get a database session.
# The factory lives on app.state; see recettes_api.main.create_app.
def get_db(request: Request):
    """
    SQLAlchemy session generator.
    Yields a session and ensures it's closed afterward.
    """
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
