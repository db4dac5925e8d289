# Shared helpers for the API tests.


def register_user(client, nom="Alice", email="alice@example.com", password="secret123"):
    response = client.post(
        "/utilisateurs/inscription",
        json={"nom": nom, "email": email, "motDePasse": password},
    )
    assert response.status_code == 201, response.json()
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def recipe_payload(**overrides) -> dict:
    payload = {
        "titre": "Tarte aux pommes",
        "ingredients": ["pommes", "pâte brisée", "sucre"],
        "etapes": ["Étaler la pâte", "Disposer les pommes", "Cuire 35 minutes"],
        "auteur": "Marie",
    }
    payload.update(overrides)
    return payload


def create_recipe(client, headers, **overrides) -> dict:
    response = client.post("/recettes", json=recipe_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def add_comment(client, recipe_id, auteur="Paul", contenu="Délicieux !"):
    response = client.post(
        f"/recettes/{recipe_id}/commentaires",
        json={"auteur": auteur, "contenu": contenu},
    )
    assert response.status_code == 201, response.json()
    return response.json()["data"]
