from datetime import timedelta

from fastapi.testclient import TestClient

from recettes_api import models
from recettes_api.core.config import Settings
from recettes_api.core.security import create_access_token, create_user_token
from tests.helpers import bearer, create_recipe, recipe_payload, register_user


def test_register(client: TestClient):
    body = register_user(client, nom="Alice", email="Alice@Example.com")
    assert body["success"] is True
    assert body["message"] == "Inscription réussie"
    assert body["token"]

    user = body["utilisateur"]
    assert len(user["id"]) == 24
    assert user["nom"] == "Alice"
    assert user["email"] == "alice@example.com"
    assert "motDePasse" not in user
    assert "hashed_password" not in user


def test_register_stores_a_hash(client: TestClient, db):
    register_user(client, password="secret123")

    db_user = db.query(models.User).one()
    assert db_user.hashed_password != "secret123"
    assert db_user.hashed_password.startswith("$2")


def test_register_validation(client: TestClient):
    response = client.post(
        "/utilisateurs/inscription",
        json={"nom": "A", "email": "not-an-email", "motDePasse": "12345"},
    )
    assert response.status_code == 400
    details = {d["champ"]: d["message"] for d in response.json()["details"]}
    assert details == {
        "nom": "Le nom doit contenir entre 2 et 50 caractères",
        "email": "Veuillez fournir un email valide",
        "motDePasse": "Le mot de passe doit contenir au moins 6 caractères",
    }


def test_register_duplicate_email_is_case_insensitive(client: TestClient):
    register_user(client, email="alice@example.com")

    response = client.post(
        "/utilisateurs/inscription",
        json={"nom": "Autre", "email": "ALICE@example.com", "motDePasse": "secret123"},
    )
    assert response.status_code == 409
    assert response.json()["message"] == "Un utilisateur avec cet email existe déjà"


def test_login(client: TestClient):
    register_user(client)

    response = client.post(
        "/utilisateurs/connexion",
        json={"email": " ALICE@example.com ", "motDePasse": "secret123"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Connexion réussie"
    assert body["utilisateur"]["email"] == "alice@example.com"

    # The token works on protected routes
    profile = client.get("/utilisateurs/profil", headers=bearer(body["token"]))
    assert profile.status_code == 200


def test_login_failures_do_not_reveal_which_part_was_wrong(client: TestClient):
    register_user(client)

    wrong_password = client.post(
        "/utilisateurs/connexion", json={"email": "alice@example.com", "motDePasse": "nope-nope"}
    )
    unknown_email = client.post(
        "/utilisateurs/connexion", json={"email": "bob@example.com", "motDePasse": "secret123"}
    )
    for response in (wrong_password, unknown_email):
        assert response.status_code == 401
        assert response.json()["message"] == "Email ou mot de passe incorrect"


def test_login_validation(client: TestClient):
    response = client.post("/utilisateurs/connexion", json={"email": "alice@example.com"})
    assert response.status_code == 400
    assert response.json()["details"][0]["champ"] == "motDePasse"


def test_profile(client: TestClient):
    token = register_user(client)["token"]

    response = client.get("/utilisateurs/profil", headers=bearer(token))
    assert response.status_code == 200
    user = response.json()["data"]
    assert user["nom"] == "Alice"
    assert user["email"] == "alice@example.com"
    assert user["createdAt"] is not None
    assert user["updatedAt"] is not None
    assert "hashed_password" not in user


def test_profile_of_deleted_user(client: TestClient, db):
    body = register_user(client)
    db.query(models.User).filter(models.User.id == body["utilisateur"]["id"]).delete()
    db.commit()

    response = client.get("/utilisateurs/profil", headers=bearer(body["token"]))
    assert response.status_code == 404
    assert response.json()["message"] == "Utilisateur non trouvé"


def test_list_users(client: TestClient):
    register_user(client, nom="Alice", email="alice@example.com")
    register_user(client, nom="Bob", email="bob@example.com")

    response = client.get("/utilisateurs")
    assert response.status_code == 200
    users = response.json()["data"]
    assert [u["nom"] for u in users] == ["Alice", "Bob"]
    for user in users:
        assert set(user) == {"id", "nom", "email", "createdAt", "updatedAt"}


# --- Token handling ---

def test_missing_token(client: TestClient):
    response = client.get("/utilisateurs/profil")
    assert response.status_code == 401
    assert response.json()["message"] == "Accès non autorisé. Token manquant."
    assert response.headers["www-authenticate"] == "Bearer"


def test_wrong_scheme(client: TestClient):
    token = register_user(client)["token"]

    for value in (f"Token {token}", token, "Bearer", f"Bearer {token} extra"):
        response = client.get("/utilisateurs/profil", headers={"Authorization": value})
        assert response.status_code == 401
        assert response.json()["message"] == "Format du token invalide. Utilisez: Bearer <token>"


def test_expired_token(client: TestClient, settings: Settings):
    user_id = register_user(client)["utilisateur"]["id"]
    token = create_access_token({"id": user_id}, settings, expires_delta=timedelta(minutes=-1))

    response = client.get("/utilisateurs/profil", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["message"] == "Token expiré. Veuillez vous reconnecter."


def test_token_signed_with_another_secret(client: TestClient, settings: Settings):
    user_id = register_user(client)["utilisateur"]["id"]
    other = settings.model_copy(update={"SECRET_KEY": "someone-else"})
    token = create_access_token({"id": user_id}, other)

    response = client.get("/utilisateurs/profil", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["message"] == "Token invalide"


def test_garbage_token(client: TestClient):
    response = client.get("/utilisateurs/profil", headers=bearer("not.a.jwt"))
    assert response.status_code == 401
    assert response.json()["message"] == "Token invalide"


def test_token_without_identity(client: TestClient, settings: Settings):
    token = create_access_token({"role": "nobody"}, settings)

    response = client.get("/utilisateurs/profil", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["message"] == "Token invalide"


def test_user_token_claims_identify_the_user(client: TestClient, settings: Settings, db):
    register_user(client)
    db_user = db.query(models.User).one()

    token = create_user_token(db_user, settings)
    response = client.post("/recettes", json=recipe_payload(), headers=bearer(token))
    assert response.status_code == 201


def test_auth_is_checked_before_the_body(client: TestClient):
    # An invalid body sent without a token is refused for the token
    response = client.post("/recettes", json={"titre": "x"})
    assert response.status_code == 401


def test_optional_auth_routes_accept_anonymous(client: TestClient, auth_headers):
    recipe = create_recipe(client, auth_headers)

    garbage = "Bearer " + "a" * 20
    for headers in ({}, {"Authorization": garbage}, {"Authorization": "Basic abc"}):
        response = client.post(
            f"/recettes/{recipe['id']}/commentaires",
            json={"auteur": "Paul", "contenu": "Top"},
            headers=headers,
        )
        assert response.status_code == 201


def test_empty_bearer_token(client: TestClient):
    response = client.get("/utilisateurs/profil", headers={"Authorization": "Bearer "})
    assert response.status_code == 401
    assert response.json()["message"] == "Token invalide"


def test_register_accepts_special_use_domain(client: TestClient):
    body = register_user(client, email="alice@site.local")
    assert body["utilisateur"]["email"] == "alice@site.local"


def test_profile_timestamps_carry_utc_offset(client: TestClient):
    from datetime import datetime, timedelta

    token = register_user(client)["token"]
    user = client.get("/utilisateurs/profil", headers=bearer(token)).json()["data"]
    for field in ("createdAt", "updatedAt"):
        parsed = datetime.fromisoformat(user[field].replace("Z", "+00:00"))
        assert parsed.utcoffset() == timedelta(0)
