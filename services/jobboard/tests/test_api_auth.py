from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration


def test_signup_returns_token_and_public_user(client: TestClient) -> None:
    response = client.post(
        "/auth/signup",
        json={
            "email": "Hiring@Example.com",
            "password": "secret-password",
            "first_name": "Grace",
            "last_name": "Hopper",
            "role": "employer",
            "company_name": "Acme",
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "Bearer"
    assert body["message"] == "User registered successfully"
    assert body["token"]
    assert body["user"]["email"] == "hiring@example.com"
    assert body["user"]["role"] == "EMPLOYER"
    assert body["user"]["company_name"] == "Acme"
    assert "password_hash" not in body["user"]


def test_job_seeker_signup_drops_company_name(client: TestClient) -> None:
    response = client.post(
        "/auth/signup",
        json={
            "email": "seeker@example.com",
            "password": "secret-password",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "role": "JOB_SEEKER",
            "company_name": "Not my company",
        },
    )

    assert response.status_code == 201
    assert response.json()["user"]["company_name"] is None


def test_duplicate_email_is_a_conflict(client: TestClient, signup) -> None:
    signup("taken@example.com")

    response = client.post(
        "/auth/signup",
        json={
            "email": "TAKEN@example.com",
            "password": "secret-password",
            "first_name": "Other",
            "last_name": "Person",
            "role": "JOB_SEEKER",
        },
    )

    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "not-an-email", "role": "JOB_SEEKER"},
        {"email": "ok@example.com", "role": "ADMIN"},
        {"email": "ok@example.com", "role": "JOB_SEEKER", "password": "123"},
    ],
)
def test_signup_rejects_invalid_payloads(client: TestClient, payload: dict[str, str]) -> None:
    body = {
        "password": "secret-password",
        "first_name": "Test",
        "last_name": "User",
        **payload,
    }

    response = client.post("/auth/signup", json=body)

    assert response.status_code == 422


def test_login_issues_a_fresh_token(client: TestClient, signup) -> None:
    signup("seeker@example.com")

    response = client.post(
        "/auth/login",
        json={"email": "seeker@example.com", "password": "secret-password"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "seeker@example.com"


@pytest.mark.parametrize(
    ("email", "password"),
    [("seeker@example.com", "wrong-password"), ("nobody@example.com", "secret-password")],
)
def test_login_failures_look_the_same(
    client: TestClient,
    signup,
    email: str,
    password: str,
) -> None:
    signup("seeker@example.com")

    response = client.post("/auth/login", json={"email": email, "password": password})

    assert response.status_code == 401
    body = response.json()
    assert body["detail"] == "Invalid email or password"
    assert body["error"] == "unauthenticated"


def test_me_requires_authentication(client: TestClient) -> None:
    response = client.get("/auth/me", headers={"x-request-id": "me-request"})

    assert response.status_code == 401
    assert response.json() == {
        "detail": "Authentication required",
        "error": "unauthenticated",
        "request_id": "me-request",
    }


@pytest.mark.parametrize(
    "authorization",
    ["Bearer not-a-token", "Bearer ", "Token abc", "Bearer a.b.c"],
)
def test_bad_credentials_are_treated_as_anonymous(client: TestClient, authorization: str) -> None:
    protected = client.get("/auth/me", headers={"Authorization": authorization})
    public = client.get("/jobs/public/all", headers={"Authorization": authorization})

    assert protected.status_code == 401
    assert public.status_code == 200


def test_profile_can_be_read_by_any_user_and_updated_by_owner(client: TestClient, signup) -> None:
    seeker = signup("seeker@example.com")
    employer = signup("employer@example.com", role="EMPLOYER", company_name="Acme")

    read = client.get(f"/users/{seeker['id']}", headers=employer["headers"])
    assert read.status_code == 200
    assert read.json()["email"] == "seeker@example.com"

    update = client.put(
        f"/users/{seeker['id']}",
        headers=seeker["headers"],
        json={"bio": "Python developer", "skills": ["python", "fastapi"], "company_name": "Nope"},
    )
    assert update.status_code == 200
    body = update.json()
    assert body["bio"] == "Python developer"
    assert body["skills"] == ["python", "fastapi"]
    assert body["company_name"] is None

    forbidden = client.put(
        f"/users/{seeker['id']}",
        headers=employer["headers"],
        json={"bio": "Hijacked"},
    )
    assert forbidden.status_code == 403
    assert client.get(f"/users/{seeker['id']}", headers=seeker["headers"]).json()["bio"] == (
        "Python developer"
    )


def test_unknown_profile_is_not_found(client: TestClient, signup) -> None:
    seeker = signup("seeker@example.com")

    assert client.get("/users/missing", headers=seeker["headers"]).status_code == 404
    assert client.get("/users/missing").status_code == 401


def test_job_seeker_directory_is_employer_only(client: TestClient, signup) -> None:
    seeker = signup("seeker@example.com")
    employer = signup("employer@example.com", role="EMPLOYER")

    allowed = client.get("/users/job-seekers", headers=employer["headers"])
    denied = client.get("/users/job-seekers", headers=seeker["headers"])

    assert allowed.status_code == 200
    assert [user["email"] for user in allowed.json()] == ["seeker@example.com"]
    assert denied.status_code == 403
    assert denied.json()["error"] == "forbidden"
