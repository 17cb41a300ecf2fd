from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from jobboard.errors import ConflictError, NotFoundError
from jobboard.models import (
    ApplicationRecord,
    ApplicationStatus,
    JobRecord,
    JobStatus,
    Role,
    UserRecord,
)

USER_COLUMNS = """
    id,
    email,
    password_hash,
    role,
    first_name,
    last_name,
    phone,
    city,
    country,
    bio,
    skills_json,
    experience,
    company_name,
    created_at,
    updated_at
"""

JOB_COLUMNS = """
    id,
    employer_id,
    title,
    description,
    company_name,
    location,
    job_type,
    experience_level,
    salary_min,
    salary_max,
    salary_currency,
    required_skills_json,
    tags_json,
    category,
    application_deadline,
    status,
    total_applications,
    view_count,
    created_at,
    updated_at
"""

APPLICATION_COLUMNS = """
    a.id,
    a.job_id,
    a.job_seeker_id,
    a.cover_letter,
    a.resume_url,
    a.expected_salary,
    a.availability_date,
    a.willing_to_relocate,
    a.status,
    a.employer_notes,
    a.applied_at,
    a.reviewed_at,
    a.updated_at
"""


class JobBoardRepository:
    """SQLite-backed store for users, jobs and applications.

    Also serves as the identity directory for the authentication gate.
    """

    def __init__(self, database_path: str) -> None:
        self.database_path = Path(database_path)
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Database connection is not initialized")
        return self._connection

    def connect(self) -> None:
        with self._lock:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.database_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys=ON")
            self._connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    role TEXT NOT NULL,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    phone TEXT,
                    city TEXT,
                    country TEXT,
                    bio TEXT,
                    skills_json TEXT NOT NULL DEFAULT '[]',
                    experience TEXT,
                    company_name TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    employer_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    company_name TEXT NOT NULL,
                    location TEXT NOT NULL,
                    job_type TEXT NOT NULL,
                    experience_level TEXT NOT NULL,
                    salary_min REAL,
                    salary_max REAL,
                    salary_currency TEXT NOT NULL DEFAULT 'USD',
                    required_skills_json TEXT NOT NULL DEFAULT '[]',
                    tags_json TEXT NOT NULL DEFAULT '[]',
                    category TEXT,
                    application_deadline TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'ACTIVE',
                    total_applications INTEGER NOT NULL DEFAULT 0,
                    view_count INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS applications (
                    id TEXT PRIMARY KEY,
                    job_id TEXT NOT NULL REFERENCES jobs(id) ON DELETE RESTRICT,
                    job_seeker_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    cover_letter TEXT NOT NULL,
                    resume_url TEXT,
                    expected_salary TEXT,
                    availability_date TEXT,
                    willing_to_relocate INTEGER NOT NULL DEFAULT 0,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    employer_notes TEXT,
                    applied_at TEXT NOT NULL,
                    reviewed_at TEXT,
                    updated_at TEXT NOT NULL,
                    UNIQUE (job_id, job_seeker_id)
                );

                CREATE INDEX IF NOT EXISTS idx_jobs_employer ON jobs(employer_id);
                CREATE INDEX IF NOT EXISTS idx_applications_seeker ON applications(job_seeker_id);
                """
            )
            self._connection.commit()

    def close(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            self._connection.close()
            self._connection = None

    # Users

    def create_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            try:
                self.connection.execute(
                    f"""
                    INSERT INTO users ({USER_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user.id,
                        user.email,
                        user.password_hash,
                        user.role.value,
                        user.first_name,
                        user.last_name,
                        user.phone,
                        user.city,
                        user.country,
                        user.bio,
                        json.dumps(user.skills),
                        user.experience,
                        user.company_name,
                        user.created_at,
                        user.updated_at,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                raise ConflictError(f"User already exists with email: {user.email}") from exc
            self.connection.commit()
            return user

    def find_user_by_email(self, email: str) -> UserRecord | None:
        with self._lock:
            row = self.connection.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE email = ?",
                (email.lower(),),
            ).fetchone()
            if row is None:
                return None
            return self._to_user(row)

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._lock:
            row = self.connection.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            return self._to_user(row)

    def save_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            self.connection.execute(
                """
                UPDATE users
                SET
                    first_name = ?,
                    last_name = ?,
                    phone = ?,
                    city = ?,
                    country = ?,
                    bio = ?,
                    skills_json = ?,
                    experience = ?,
                    company_name = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    user.first_name,
                    user.last_name,
                    user.phone,
                    user.city,
                    user.country,
                    user.bio,
                    json.dumps(user.skills),
                    user.experience,
                    user.company_name,
                    user.updated_at,
                    user.id,
                ),
            )
            self.connection.commit()
            return user

    def list_users_by_role(self, role: Role, limit: int) -> list[UserRecord]:
        with self._lock:
            cursor = self.connection.execute(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE role = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (role.value, limit),
            )
            return [self._to_user(row) for row in cursor.fetchall()]

    # Jobs

    def insert_job(self, job: JobRecord) -> JobRecord:
        with self._lock:
            self.connection.execute(
                f"""
                INSERT INTO jobs ({JOB_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.id,
                    job.employer_id,
                    job.title,
                    job.description,
                    job.company_name,
                    job.location,
                    job.job_type,
                    job.experience_level,
                    job.salary_min,
                    job.salary_max,
                    job.salary_currency,
                    json.dumps(job.required_skills),
                    json.dumps(job.tags),
                    job.category,
                    job.application_deadline,
                    job.status.value,
                    job.total_applications,
                    job.view_count,
                    job.created_at,
                    job.updated_at,
                ),
            )
            self.connection.commit()
            return job

    def get_job(self, job_id: str) -> JobRecord | None:
        with self._lock:
            row = self.connection.execute(
                f"SELECT {JOB_COLUMNS} FROM jobs WHERE id = ?",
                (job_id,),
            ).fetchone()
            if row is None:
                return None
            return self._to_job(row)

    def save_job_details(self, job: JobRecord) -> JobRecord:
        """Write editable fields only; counters and status have their own updates."""
        with self._lock:
            self.connection.execute(
                """
                UPDATE jobs
                SET
                    title = ?,
                    description = ?,
                    company_name = ?,
                    location = ?,
                    job_type = ?,
                    experience_level = ?,
                    salary_min = ?,
                    salary_max = ?,
                    salary_currency = ?,
                    required_skills_json = ?,
                    tags_json = ?,
                    category = ?,
                    application_deadline = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    job.title,
                    job.description,
                    job.company_name,
                    job.location,
                    job.job_type,
                    job.experience_level,
                    job.salary_min,
                    job.salary_max,
                    job.salary_currency,
                    json.dumps(job.required_skills),
                    json.dumps(job.tags),
                    job.category,
                    job.application_deadline,
                    job.updated_at,
                    job.id,
                ),
            )
            self.connection.commit()
            return self._get_job_or_raise(job.id)

    def set_job_status(self, job_id: str, status: JobStatus, updated_at: str) -> JobRecord:
        with self._lock:
            self.connection.execute(
                "UPDATE jobs SET status = ?, updated_at = ? WHERE id = ?",
                (status.value, updated_at, job_id),
            )
            self.connection.commit()
            return self._get_job_or_raise(job_id)

    def record_job_view(self, job_id: str) -> JobRecord | None:
        with self._lock:
            cursor = self.connection.execute(
                "UPDATE jobs SET view_count = view_count + 1 WHERE id = ?",
                (job_id,),
            )
            self.connection.commit()
            if cursor.rowcount == 0:
                return None
            return self.get_job(job_id)

    def delete_job(self, job_id: str) -> bool:
        """Delete a job. The foreign key refuses it while any application references the job."""
        with self._lock:
            try:
                cursor = self.connection.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                raise ConflictError(
                    "Cannot delete a job that has applications; close it instead"
                ) from exc
            self.connection.commit()
            return cursor.rowcount > 0

    def list_jobs_by_status(self, status: JobStatus, limit: int) -> list[JobRecord]:
        with self._lock:
            cursor = self.connection.execute(
                f"""
                SELECT {JOB_COLUMNS}
                FROM jobs
                WHERE status = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (status.value, limit),
            )
            return [self._to_job(row) for row in cursor.fetchall()]

    def list_jobs_by_employer(self, employer_id: str, limit: int) -> list[JobRecord]:
        with self._lock:
            cursor = self.connection.execute(
                f"""
                SELECT {JOB_COLUMNS}
                FROM jobs
                WHERE employer_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (employer_id, limit),
            )
            return [self._to_job(row) for row in cursor.fetchall()]

    def count_jobs_by_status(self, employer_id: str) -> dict[JobStatus, int]:
        with self._lock:
            cursor = self.connection.execute(
                """
                SELECT status, COUNT(1) AS c
                FROM jobs
                WHERE employer_id = ?
                GROUP BY status
                """,
                (employer_id,),
            )
            counts = {status: 0 for status in JobStatus}
            for row in cursor.fetchall():
                counts[JobStatus(row["status"])] = int(row["c"])
            return counts

    # Applications

    def insert_application(self, application: ApplicationRecord) -> ApplicationRecord:
        """Insert a new application and bump the job's counter in one transaction.

        The (job, job seeker) uniqueness constraint and the ACTIVE-job guard are
        both evaluated by SQLite as part of the insert.
        """
        with self._lock:
            try:
                cursor = self.connection.execute(
                    """
                    INSERT INTO applications (
                        id,
                        job_id,
                        job_seeker_id,
                        cover_letter,
                        resume_url,
                        expected_salary,
                        availability_date,
                        willing_to_relocate,
                        status,
                        employer_notes,
                        applied_at,
                        reviewed_at,
                        updated_at
                    )
                    SELECT ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?
                    WHERE EXISTS (SELECT 1 FROM jobs WHERE id = ? AND status = ?)
                    """,
                    (
                        application.id,
                        application.job_id,
                        application.job_seeker_id,
                        application.cover_letter,
                        application.resume_url,
                        application.expected_salary,
                        application.availability_date,
                        int(application.willing_to_relocate),
                        application.status.value,
                        application.employer_notes,
                        application.applied_at,
                        application.reviewed_at,
                        application.updated_at,
                        application.job_id,
                        JobStatus.ACTIVE.value,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                raise ConflictError("You have already applied to this job") from exc

            if cursor.rowcount == 0:
                self.connection.rollback()
                raise ConflictError("Cannot apply to a job that is not active")

            self.connection.execute(
                "UPDATE jobs SET total_applications = total_applications + 1 WHERE id = ?",
                (application.job_id,),
            )
            self.connection.commit()
            return application

    def get_application(self, application_id: str) -> ApplicationRecord | None:
        with self._lock:
            row = self.connection.execute(
                f"SELECT {APPLICATION_COLUMNS} FROM applications a WHERE a.id = ?",
                (application_id,),
            ).fetchone()
            if row is None:
                return None
            return self._to_application(row)

    def save_application_review(
        self,
        application: ApplicationRecord,
        *,
        expected_status: ApplicationStatus,
    ) -> bool:
        """Persist a status change only if the stored status is still ``expected_status``."""
        with self._lock:
            cursor = self.connection.execute(
                """
                UPDATE applications
                SET
                    status = ?,
                    employer_notes = ?,
                    reviewed_at = ?,
                    updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    application.status.value,
                    application.employer_notes,
                    application.reviewed_at,
                    application.updated_at,
                    application.id,
                    expected_status.value,
                ),
            )
            self.connection.commit()
            return cursor.rowcount > 0

    def delete_pending_application(self, application: ApplicationRecord) -> bool:
        with self._lock:
            cursor = self.connection.execute(
                "DELETE FROM applications WHERE id = ? AND status = ?",
                (application.id, ApplicationStatus.PENDING.value),
            )
            if cursor.rowcount == 0:
                self.connection.rollback()
                return False
            self.connection.execute(
                """
                UPDATE jobs
                SET total_applications = MAX(total_applications - 1, 0)
                WHERE id = ?
                """,
                (application.job_id,),
            )
            self.connection.commit()
            return True

    def list_applications(
        self,
        *,
        limit: int,
        job_id: str | None = None,
        job_seeker_id: str | None = None,
        employer_id: str | None = None,
        status: ApplicationStatus | None = None,
        party_id: str | None = None,
    ) -> list[ApplicationRecord]:
        with self._lock:
            query = f"""
                SELECT {APPLICATION_COLUMNS}
                FROM applications a
                JOIN jobs j ON j.id = a.job_id
            """
            filters: list[str] = []
            params: list[Any] = []
            if job_id:
                filters.append("a.job_id = ?")
                params.append(job_id)
            if job_seeker_id:
                filters.append("a.job_seeker_id = ?")
                params.append(job_seeker_id)
            if employer_id:
                filters.append("j.employer_id = ?")
                params.append(employer_id)
            if status:
                filters.append("a.status = ?")
                params.append(status.value)
            if party_id:
                filters.append("(a.job_seeker_id = ? OR j.employer_id = ?)")
                params.extend([party_id, party_id])
            if filters:
                query += " WHERE " + " AND ".join(filters)
            query += " ORDER BY a.applied_at DESC, a.rowid DESC LIMIT ?"
            params.append(limit)
            cursor = self.connection.execute(query, tuple(params))
            return [self._to_application(row) for row in cursor.fetchall()]

    def count_applications_by_status(self, job_seeker_id: str) -> dict[ApplicationStatus, int]:
        with self._lock:
            cursor = self.connection.execute(
                """
                SELECT status, COUNT(1) AS c
                FROM applications
                WHERE job_seeker_id = ?
                GROUP BY status
                """,
                (job_seeker_id,),
            )
            counts = {status: 0 for status in ApplicationStatus}
            for row in cursor.fetchall():
                counts[ApplicationStatus(row["status"])] = int(row["c"])
            return counts

    def _get_job_or_raise(self, job_id: str) -> JobRecord:
        job = self.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job

    def _to_user(self, row: sqlite3.Row) -> UserRecord:
        payload = dict(row)
        payload["skills"] = json.loads(payload.pop("skills_json") or "[]")
        return UserRecord(**payload)

    def _to_job(self, row: sqlite3.Row) -> JobRecord:
        payload = dict(row)
        payload["required_skills"] = json.loads(payload.pop("required_skills_json") or "[]")
        payload["tags"] = json.loads(payload.pop("tags_json") or "[]")
        return JobRecord(**payload)

    def _to_application(self, row: sqlite3.Row) -> ApplicationRecord:
        payload = dict(row)
        payload["willing_to_relocate"] = bool(payload["willing_to_relocate"])
        return ApplicationRecord(**payload)
