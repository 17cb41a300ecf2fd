from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration


@pytest.fixture
def employer(signup):
    return signup("employer@example.com", role="EMPLOYER", company_name="Acme")


@pytest.fixture
def job(client: TestClient, employer, job_payload) -> dict:
    response = client.post("/jobs/create", headers=employer["headers"], json=job_payload())
    assert response.status_code == 201, response.text
    return response.json()


def test_employer_creates_active_job(client: TestClient, employer, job_payload) -> None:
    response = client.post(
        "/jobs/create",
        headers=employer["headers"],
        json=job_payload(title="  Senior   Backend Engineer "),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "ACTIVE"
    assert body["employer_id"] == employer["id"]
    assert body["title"] == "Senior Backend Engineer"
    assert body["total_applications"] == 0
    assert body["view_count"] == 0


def test_job_seeker_cannot_create_jobs(client: TestClient, signup, job_payload) -> None:
    seeker = signup("seeker@example.com")

    response = client.post("/jobs/create", headers=seeker["headers"], json=job_payload())

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_salary_range_is_validated(client: TestClient, employer, job_payload) -> None:
    response = client.post(
        "/jobs/create",
        headers=employer["headers"],
        json=job_payload(salary_min=150000, salary_max=100000),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "validation_failed"


def test_anonymous_caller_sees_public_jobs_but_not_my_jobs(client: TestClient, job) -> None:
    public = client.get(f"/jobs/public/{job['id']}")
    mine = client.get("/jobs/my-jobs")

    assert public.status_code == 200
    assert public.json()["id"] == job["id"]
    assert mine.status_code == 401
    assert mine.json()["error"] == "unauthenticated"


def test_public_view_counts_views(client: TestClient, job) -> None:
    client.get(f"/jobs/public/{job['id']}")
    response = client.get(f"/jobs/public/{job['id']}")

    assert response.json()["view_count"] == 2


def test_missing_public_job_is_not_found(client: TestClient) -> None:
    response = client.get("/jobs/public/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_public_listing_only_shows_active_jobs(
    client: TestClient,
    employer,
    job,
    job_payload,
) -> None:
    draft = client.post(
        "/jobs/create",
        headers=employer["headers"],
        json=job_payload(title="Data Engineer"),
    ).json()
    client.patch(
        f"/jobs/{draft['id']}/status",
        headers=employer["headers"],
        json={"status": "draft"},
    )

    listing = client.get("/jobs/public/all")

    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [job["id"]]


def test_only_owner_can_update_job(client: TestClient, signup, employer, job, job_payload) -> None:
    rival = signup("rival@example.com", role="EMPLOYER")

    denied = client.put(
        f"/jobs/{job['id']}",
        headers=rival["headers"],
        json=job_payload(title="Hijacked"),
    )
    allowed = client.put(
        f"/jobs/{job['id']}",
        headers=employer["headers"],
        json=job_payload(title="Staff Engineer"),
    )

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["title"] == "Staff Engineer"
    assert allowed.json()["status"] == "ACTIVE"


def test_only_owner_can_delete_job(client: TestClient, signup, employer, job) -> None:
    rival = signup("rival@example.com", role="EMPLOYER")

    denied = client.delete(f"/jobs/{job['id']}", headers=rival["headers"])
    allowed = client.delete(f"/jobs/{job['id']}", headers=employer["headers"])

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json() == {"deleted": True, "job_id": job["id"]}
    assert client.get(f"/jobs/public/{job['id']}").status_code == 404


def test_job_status_changes(client: TestClient, signup, employer, job) -> None:
    rival = signup("rival@example.com", role="EMPLOYER")

    invalid = client.patch(
        f"/jobs/{job['id']}/status",
        headers=employer["headers"],
        json={"status": "ARCHIVED"},
    )
    denied = client.patch(
        f"/jobs/{job['id']}/status",
        headers=rival["headers"],
        json={"status": "CLOSED"},
    )
    closed = client.patch(
        f"/jobs/{job['id']}/status",
        headers=employer["headers"],
        json={"status": "closed"},
    )

    assert invalid.status_code == 422
    assert invalid.json()["error"] == "validation_failed"
    assert denied.status_code == 403
    assert closed.status_code == 200
    assert closed.json()["status"] == "CLOSED"


def test_my_jobs_and_stats(client: TestClient, signup, employer, job, job_payload) -> None:
    rival = signup("rival@example.com", role="EMPLOYER")
    client.post("/jobs/create", headers=rival["headers"], json=job_payload())
    second = client.post("/jobs/create", headers=employer["headers"], json=job_payload()).json()
    client.patch(
        f"/jobs/{second['id']}/status",
        headers=employer["headers"],
        json={"status": "CLOSED"},
    )

    mine = client.get("/jobs/my-jobs", headers=employer["headers"])
    stats = client.get("/jobs/stats", headers=employer["headers"])

    assert {item["id"] for item in mine.json()} == {job["id"], second["id"]}
    assert stats.json() == {"total_jobs": 2, "active_jobs": 1, "closed_jobs": 1, "draft_jobs": 0}


def test_update_of_missing_job_is_not_found(client: TestClient, employer, job_payload) -> None:
    response = client.put("/jobs/missing", headers=employer["headers"], json=job_payload())

    assert response.status_code == 404
