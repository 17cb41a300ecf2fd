from __future__ import annotations

import json
import logging
import os
import secrets
import sqlite3
import tempfile
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from jobboard.accounts import AccountService
from jobboard.applications import ApplicationWorkflow
from jobboard.errors import JobBoardError
from jobboard.gate import AuthenticationGate
from jobboard.jobs import JobCatalog
from jobboard.models import (
    ApplicationRecord,
    ApplicationRequest,
    ApplicationStats,
    ApplicationStatusRequest,
    AuthResponse,
    JobRecord,
    JobRequest,
    JobStats,
    JobStatusRequest,
    LoginRequest,
    ProfileUpdateRequest,
    SignupRequest,
    UserResponse,
    VerifiedIdentity,
    WithdrawResponse,
)
from jobboard.policy import Action
from jobboard.repository import JobBoardRepository
from jobboard.tokens import DEFAULT_ISSUER, TokenService

DEFAULT_DB_PATH = os.path.join(tempfile.gettempdir(), "jobboard", "jobboard.sqlite3")
AUTHORIZATION_HEADER = "authorization"
LOGGER = logging.getLogger("jobboard.api")


def current_identity(request: Request) -> VerifiedIdentity | None:
    return getattr(request.state, "identity", None)


def error_response(
    request: Request,
    *,
    status_code: int,
    error: str,
    detail: str,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "error": error,
            "request_id": getattr(request.state, "request_id", None),
        },
    )


def storage_unavailable_response(request: Request, exc: sqlite3.OperationalError) -> JSONResponse:
    LOGGER.error(
        json.dumps(
            {
                "event": "storage_unavailable",
                "request_id": getattr(request.state, "request_id", None),
                "error": str(exc),
            }
        )
    )
    return error_response(
        request,
        status_code=503,
        error="storage_unavailable",
        detail="Storage is temporarily unavailable",
    )


def create_app(
    *,
    database_path: str | None = None,
    signing_key: str | None = None,
    issuer: str | None = None,
) -> FastAPI:
    resolved_path = database_path or os.getenv("JOBBOARD_DB_PATH", DEFAULT_DB_PATH)
    resolved_key = (signing_key or os.getenv("JOBBOARD_SIGNING_KEY", "")).strip()
    if not resolved_key:
        resolved_key = secrets.token_urlsafe(64)
    resolved_issuer = (issuer or os.getenv("JOBBOARD_TOKEN_ISSUER", "")).strip() or DEFAULT_ISSUER

    repository = JobBoardRepository(database_path=resolved_path)
    tokens = TokenService(resolved_key, issuer=resolved_issuer)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(repository.connect)
        app.state.repository = repository
        app.state.tokens = tokens
        app.state.gate = AuthenticationGate(tokens, repository)
        app.state.accounts = AccountService(repository, tokens)
        app.state.jobs = JobCatalog(repository)
        app.state.applications = ApplicationWorkflow(repository)
        try:
            yield
        finally:
            await run_in_threadpool(repository.close)

    app = FastAPI(title="Job Board", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(JobBoardError)
    async def job_board_error_handler(request: Request, exc: JobBoardError) -> JSONResponse:
        return error_response(
            request,
            status_code=exc.status_code,
            error=exc.error,
            detail=exc.detail,
        )

    @app.exception_handler(sqlite3.OperationalError)
    async def storage_error_handler(request: Request, exc: sqlite3.OperationalError) -> JSONResponse:
        return storage_unavailable_response(request, exc)

    @app.middleware("http")
    async def authentication_middleware(request: Request, call_next):
        # Runs outside the exception handlers, so store failures are mapped here.
        try:
            request.state.identity = await request.app.state.gate.authenticate(
                request.headers.get(AUTHORIZATION_HEADER),
                request_id=getattr(request.state, "request_id", None),
            )
        except sqlite3.OperationalError as exc:
            return storage_unavailable_response(request, exc)
        return await call_next(request)

    @app.middleware("http")
    async def observability_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            LOGGER.exception(
                json.dumps(
                    {
                        "event": "request_complete",
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": 500,
                        "duration_ms": round(duration_ms, 3),
                        "error": str(exc),
                    }
                )
            )
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
                headers={"x-request-id": request_id},
            )

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["x-request-id"] = request_id
        identity = current_identity(request)
        LOGGER.info(
            json.dumps(
                {
                    "event": "request_complete",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 3),
                    "auth_subject": identity.subject if identity else None,
                    "source_ip": request.client.host if request.client else None,
                }
            )
        )
        return response

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "jobboard"}

    @app.post("/auth/signup", response_model=AuthResponse, status_code=201)
    async def signup(payload: SignupRequest, request: Request) -> AuthResponse:
        return await run_in_threadpool(request.app.state.accounts.signup, payload)

    @app.post("/auth/login", response_model=AuthResponse)
    async def login(payload: LoginRequest, request: Request) -> AuthResponse:
        return await run_in_threadpool(request.app.state.accounts.login, payload)

    @app.get("/auth/me", response_model=UserResponse)
    async def me(request: Request) -> UserResponse:
        return await run_in_threadpool(request.app.state.accounts.me, current_identity(request))

    @app.get("/users/job-seekers", response_model=list[UserResponse])
    async def list_job_seekers(
        request: Request,
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[UserResponse]:
        return await run_in_threadpool(
            request.app.state.accounts.list_job_seekers,
            current_identity(request),
            limit,
        )

    @app.get("/users/{user_id}", response_model=UserResponse)
    async def get_user_profile(user_id: str, request: Request) -> UserResponse:
        return await run_in_threadpool(
            request.app.state.accounts.get_profile,
            current_identity(request),
            user_id,
        )

    @app.put("/users/{user_id}", response_model=UserResponse)
    async def update_user_profile(
        user_id: str,
        payload: ProfileUpdateRequest,
        request: Request,
    ) -> UserResponse:
        return await run_in_threadpool(
            request.app.state.accounts.update_profile,
            current_identity(request),
            user_id,
            payload,
        )

    @app.post("/jobs/create", response_model=JobRecord, status_code=201)
    async def create_job(payload: JobRequest, request: Request) -> JobRecord:
        return await run_in_threadpool(
            request.app.state.jobs.create,
            current_identity(request),
            payload,
        )

    @app.get("/jobs/public/all", response_model=list[JobRecord])
    async def list_public_jobs(
        request: Request,
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[JobRecord]:
        return await run_in_threadpool(
            request.app.state.jobs.list_public,
            current_identity(request),
            limit,
        )

    @app.get("/jobs/public/{job_id}", response_model=JobRecord)
    async def view_public_job(job_id: str, request: Request) -> JobRecord:
        return await run_in_threadpool(
            request.app.state.jobs.view_public,
            current_identity(request),
            job_id,
        )

    @app.get("/jobs/my-jobs", response_model=list[JobRecord])
    async def list_my_jobs(
        request: Request,
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[JobRecord]:
        return await run_in_threadpool(
            request.app.state.jobs.list_mine,
            current_identity(request),
            limit,
        )

    @app.get("/jobs/stats", response_model=JobStats)
    async def job_stats(request: Request) -> JobStats:
        return await run_in_threadpool(request.app.state.jobs.stats, current_identity(request))

    @app.put("/jobs/{job_id}", response_model=JobRecord)
    async def update_job(job_id: str, payload: JobRequest, request: Request) -> JobRecord:
        return await run_in_threadpool(
            request.app.state.jobs.update,
            current_identity(request),
            job_id,
            payload,
        )

    @app.delete("/jobs/{job_id}")
    async def delete_job(job_id: str, request: Request) -> dict[str, bool | str]:
        await run_in_threadpool(request.app.state.jobs.delete, current_identity(request), job_id)
        return {"deleted": True, "job_id": job_id}

    @app.patch("/jobs/{job_id}/status", response_model=JobRecord)
    async def change_job_status(
        job_id: str,
        payload: JobStatusRequest,
        request: Request,
    ) -> JobRecord:
        return await run_in_threadpool(
            request.app.state.jobs.change_status,
            current_identity(request),
            job_id,
            payload.status,
        )

    @app.get("/jobs/{job_id}/applicants", response_model=list[ApplicationRecord])
    async def list_job_applicants(
        job_id: str,
        request: Request,
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[ApplicationRecord]:
        return await run_in_threadpool(
            request.app.state.applications.list_for_job,
            current_identity(request),
            job_id,
            limit,
            action=Action.JOB_APPLICANTS,
        )

    @app.post("/applications/apply", response_model=ApplicationRecord, status_code=201)
    async def apply_for_job(payload: ApplicationRequest, request: Request) -> ApplicationRecord:
        return await run_in_threadpool(
            request.app.state.applications.apply,
            current_identity(request),
            payload,
        )

    @app.get("/applications/my-applications", response_model=list[ApplicationRecord])
    async def list_my_applications(
        request: Request,
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[ApplicationRecord]:
        return await run_in_threadpool(
            request.app.state.applications.list_mine,
            current_identity(request),
            limit,
        )

    @app.get("/applications/my-job-applications", response_model=list[ApplicationRecord])
    async def list_applications_for_my_jobs(
        request: Request,
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[ApplicationRecord]:
        return await run_in_threadpool(
            request.app.state.applications.list_for_my_jobs,
            current_identity(request),
            limit,
        )

    @app.get("/applications/stats", response_model=ApplicationStats)
    async def application_stats(request: Request) -> ApplicationStats:
        return await run_in_threadpool(
            request.app.state.applications.stats,
            current_identity(request),
        )

    @app.get("/applications/job/{job_id}", response_model=list[ApplicationRecord])
    async def list_applications_for_job(
        job_id: str,
        request: Request,
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[ApplicationRecord]:
        return await run_in_threadpool(
            request.app.state.applications.list_for_job,
            current_identity(request),
            job_id,
            limit,
        )

    @app.get("/applications/status/{status}", response_model=list[ApplicationRecord])
    async def list_applications_by_status(
        status: str,
        request: Request,
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[ApplicationRecord]:
        return await run_in_threadpool(
            request.app.state.applications.list_by_status,
            current_identity(request),
            status,
            limit,
        )

    @app.patch("/applications/{application_id}/status", response_model=ApplicationRecord)
    async def update_application_status(
        application_id: str,
        payload: ApplicationStatusRequest,
        request: Request,
    ) -> ApplicationRecord:
        return await run_in_threadpool(
            request.app.state.applications.update_status,
            current_identity(request),
            application_id,
            payload.status,
            payload.employer_notes,
        )

    @app.get("/applications/{application_id}", response_model=ApplicationRecord)
    async def get_application(application_id: str, request: Request) -> ApplicationRecord:
        return await run_in_threadpool(
            request.app.state.applications.get,
            current_identity(request),
            application_id,
        )

    @app.delete("/applications/{application_id}/withdraw", response_model=WithdrawResponse)
    async def withdraw_application(
        application_id: str,
        request: Request,
    ) -> WithdrawResponse:
        await run_in_threadpool(
            request.app.state.applications.withdraw,
            current_identity(request),
            application_id,
        )
        return WithdrawResponse(withdrawn=True, application_id=application_id)

    return app


app = create_app()
