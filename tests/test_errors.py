import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from recettes_api import models
from recettes_api.core.errors import ConflictError, unique_violation_details, validation_details
from recettes_api.main import create_app
from tests.helpers import create_recipe, register_user


class PostgresError(Exception):
    sqlstate = "23505"


@pytest.fixture
def failing_app(app):
    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    @app.get("/duplicate")
    def duplicate():
        raise IntegrityError(
            "INSERT INTO users (id, name, email, hashed_password) VALUES (?, ?, ?, ?)",
            ("65a1b2c3d4e5f6a7b8c9d0e1", "Bob", "bob@example.com", "hash"),
            Exception("UNIQUE constraint failed: users.email"),
        )

    @app.get("/check-violation")
    def check_violation():
        raise IntegrityError(
            "UPDATE recipes SET popularity=? WHERE recipes.id = ?",
            (-1, "65a1b2c3d4e5f6a7b8c9d0e1"),
            Exception("CHECK constraint failed: ck_recipes_popularity_non_negative"),
        )

    @app.get("/conflict")
    def conflict():
        raise ConflictError(details={"email": "alice@example.com"})

    return app


def test_unknown_route(client: TestClient):
    response = client.get("/nulle-part")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Route non trouvée: /nulle-part"


def test_method_not_allowed(client: TestClient):
    response = client.patch("/recettes")
    assert response.status_code == 405
    assert response.json()["success"] is False


def test_unhandled_error_is_500(failing_app):
    with TestClient(failing_app, raise_server_exceptions=False) as client:
        response = client.get("/boom")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Erreur interne du serveur"
    # Not production: the trace is included
    assert "kaboom" in body["stack"]


def test_stack_hidden_in_production(settings):
    app = create_app(settings.model_copy(update={"ENVIRONMENT": "production"}))

    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boom")
        not_found = client.get("/recettes/65a1b2c3d4e5f6a7b8c9d0e1")

    assert response.status_code == 500
    assert "stack" not in response.json()
    assert "kaboom" not in response.text

    assert not_found.status_code == 404
    assert "stack" not in not_found.json()


def test_integrity_error_is_409(failing_app):
    with TestClient(failing_app) as client:
        response = client.get("/duplicate")

    assert response.status_code == 409
    body = response.json()
    assert body["message"] == "Donnée en double détectée"
    assert body["details"] == {"email": "bob@example.com"}


def test_other_integrity_errors_are_500(failing_app):
    with TestClient(failing_app, raise_server_exceptions=False) as client:
        response = client.get("/check-violation")

    assert response.status_code == 500
    assert response.json()["message"] == "Erreur interne du serveur"


def test_unique_violation_details_from_the_store(client: TestClient, db):
    register_user(client, email="alice@example.com")

    db.add(models.User(name="Autre", email="alice@example.com", hashed_password="x"))
    with pytest.raises(IntegrityError) as exc:
        db.commit()
    db.rollback()

    assert unique_violation_details(exc.value) == {"email": "alice@example.com"}


def test_check_violation_is_not_a_duplicate(client: TestClient, auth_headers, db):
    recipe = create_recipe(client, auth_headers)

    db_recipe = db.get(models.Recipe, recipe["id"])
    db_recipe.popularity = -1
    with pytest.raises(IntegrityError) as exc:
        db.commit()
    db.rollback()

    assert unique_violation_details(exc.value) is None


def test_unique_violation_details_postgres():
    orig = PostgresError(
        'duplicate key value violates unique constraint "ix_users_email"\n'
        "DETAIL:  Key (email)=(alice@example.com) already exists."
    )
    exc = IntegrityError("INSERT INTO users ...", {"email": "alice@example.com"}, orig)

    assert unique_violation_details(exc) == {"email": "alice@example.com"}

    not_null = IntegrityError("INSERT INTO users ...", {}, Exception("null value in column"))
    assert unique_violation_details(not_null) is None


def test_conflict_error_keeps_details(failing_app):
    with TestClient(failing_app) as client:
        response = client.get("/conflict")

    assert response.status_code == 409
    assert response.json()["details"] == {"email": "alice@example.com"}


def test_malformed_json_body(client: TestClient, auth_headers):
    response = client.post(
        "/recettes",
        content=b'{"titre": ',
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Erreur de validation des données"
    assert body["details"][0]["message"] == "Corps JSON invalide"


def test_validation_details_paths():
    errors = [
        {"type": "missing", "loc": ("body", "auteur"), "msg": "Field required", "input": {"a": 1}},
        {"type": "not_blank", "loc": ("body", "etapes", 2), "msg": "Chaque étape doit être non vide", "input": " "},
        {"type": "int_parsing", "loc": ("query", "page"), "msg": "...", "input": "abc"},
    ]
    assert validation_details(errors) == [
        {"champ": "auteur", "message": "Ce champ est obligatoire", "valeur": None},
        {"champ": "etapes[2]", "message": "Chaque étape doit être non vide", "valeur": " "},
        {"champ": "page", "message": "Doit être un entier", "valeur": "abc"},
    ]


def login_statuses(client: TestClient, attempts: int) -> list:
    return [
        client.post(
            "/utilisateurs/connexion",
            json={"email": "bob@example.com", "motDePasse": "secret123"},
        ).status_code
        for _ in range(attempts)
    ]


def test_auth_routes_are_rate_limited(settings):
    app = create_app(settings.model_copy(update={"RATE_LIMIT_ENABLED": True}))
    with TestClient(app) as client:
        statuses = login_statuses(client, 11)

    # Default AUTH_RATE_LIMIT is 10/minute
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


def test_rate_limit_comes_from_the_app_settings(settings):
    app = create_app(settings.model_copy(update={"RATE_LIMIT_ENABLED": True, "AUTH_RATE_LIMIT": "2/minute"}))
    with TestClient(app) as client:
        statuses = login_statuses(client, 4)
        registrations = [
            client.post(
                "/utilisateurs/inscription",
                json={"nom": "Bob", "email": "bob@example.com", "motDePasse": "secret123"},
            )
            for _ in range(3)
        ]

    assert statuses == [401, 401, 429, 429]
    # Registration is counted on its own route
    assert [r.status_code for r in registrations] == [201, 409, 429]
    assert registrations[2].json()["message"] == "Trop de requêtes. Veuillez réessayer plus tard."


def test_rate_limit_switch_is_per_app(settings):
    limited = create_app(settings.model_copy(update={"RATE_LIMIT_ENABLED": True, "AUTH_RATE_LIMIT": "1/minute"}))
    # Building another app leaves the first one limited
    unlimited = create_app(settings)

    with TestClient(limited) as client:
        assert login_statuses(client, 2) == [401, 429]
    with TestClient(unlimited) as client:
        assert login_statuses(client, 3) == [401, 401, 401]
