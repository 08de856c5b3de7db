from datetime import timedelta

from fastapi.testclient import TestClient
from jose import jwt

from recipebox.api.auth import create_access_token
from recipebox.core.config import settings


def test_recipes_require_token(client: TestClient):
    response = client.get("/api/recipes")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_invalid_token_is_rejected(client: TestClient):
    response = client.get("/api/recipes", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_token_signed_with_other_key_is_rejected(client: TestClient):
    token = jwt.encode({"sub": "alice"}, "some-other-key", algorithm=settings.ALGORITHM)
    response = client.get("/api/recipes", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_expired_token_is_rejected(client: TestClient):
    token = create_access_token({"sub": "alice"}, expires_delta=timedelta(minutes=-1))
    response = client.get("/api/recipes", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_token_without_subject_is_rejected(client: TestClient):
    token = create_access_token({"email": "alice@example.com"})
    response = client.get("/api/recipes", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_current_user_is_upserted_from_claims(client: TestClient, storage, make_headers):
    headers = make_headers("alice", email="alice@example.com", first_name="Alice", last_name="Liddell")

    response = client.get("/api/auth/user", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "alice"
    assert data["email"] == "alice@example.com"
    assert data["firstName"] == "Alice"
    assert data["lastName"] == "Liddell"
    assert storage.get_user("alice") is not None


def test_profile_follows_changed_claims(client: TestClient, storage, make_headers):
    client.get("/api/auth/user", headers=make_headers("alice", email="alice@example.com"))
    response = client.get(
        "/api/auth/user",
        headers=make_headers("alice", email="alice@example.org", profile_image_url="https://img.example/a.png"),
    )
    assert response.status_code == 200
    assert response.json()["email"] == "alice@example.org"
    assert storage.get_user("alice").profile_image_url == "https://img.example/a.png"
