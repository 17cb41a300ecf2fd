from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from jobboard.main import create_app

TEST_SIGNING_KEY = "test-signing-key-for-jobboard-suite-0123456789"


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    db_path = tmp_path / "jobboard.sqlite3"
    app = create_app(database_path=str(db_path), signing_key=TEST_SIGNING_KEY)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signup(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Register a user and return its id, token and ready-made auth headers."""

    def _signup(email: str, role: str = "JOB_SEEKER", **extra: Any) -> dict[str, Any]:
        payload = {
            "email": email,
            "password": "secret-password",
            "first_name": "Test",
            "last_name": "User",
            "role": role,
            **extra,
        }
        response = client.post("/auth/signup", json=payload)
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "id": body["user"]["id"],
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _signup


@pytest.fixture
def job_payload() -> Callable[..., dict[str, Any]]:
    def _job_payload(**overrides: Any) -> dict[str, Any]:
        payload = {
            "title": "Backend Engineer",
            "description": "Build Python APIs and maintain CI tooling",
            "company_name": "Acme",
            "location": "Remote",
            "job_type": "FULL_TIME",
            "experience_level": "MID",
            "salary_min": 90000,
            "salary_max": 120000,
            "required_skills": ["python", "sql"],
            "tags": ["backend"],
            "application_deadline": "2027-01-31",
        }
        payload.update(overrides)
        return payload

    return _job_payload
