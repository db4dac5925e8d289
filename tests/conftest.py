import pytest
from typing import Generator
from fastapi.testclient import TestClient

from recettes_api.core.config import Settings
from recettes_api.main import create_app
from tests.helpers import register_user


@pytest.fixture
def settings(tmp_path) -> Settings:
    # Fresh SQLite file per test, no rate limiting
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        SECRET_KEY="test-secret",
        ENVIRONMENT="testing",
        RATE_LIMIT_ENABLED=False,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app) -> Generator:
    # The context manager runs the lifespan, which creates the tables
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client) -> Generator:
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def auth_headers(client) -> dict:
    token = register_user(client)["token"]
    return {"Authorization": f"Bearer {token}"}

