from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator


class Role(str, Enum):
    JOB_SEEKER = "JOB_SEEKER"
    EMPLOYER = "EMPLOYER"


class JobStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    DRAFT = "DRAFT"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    REVIEWED = "REVIEWED"
    SHORTLISTED = "SHORTLISTED"
    REJECTED = "REJECTED"
    HIRED = "HIRED"


@dataclass(frozen=True)
class VerifiedIdentity:
    """Authenticated caller for a single request. Never stored."""

    subject: str
    role: Role
    user_id: str


def _upper(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


class UserRecord(BaseModel):
    id: str
    email: str
    password_hash: str
    role: Role
    first_name: str
    last_name: str
    phone: str | None = None
    city: str | None = None
    country: str | None = None
    bio: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: str | None = None
    company_name: str | None = None
    created_at: str
    updated_at: str

    def to_response(self) -> UserResponse:
        return UserResponse(**self.model_dump(exclude={"password_hash"}))


class UserResponse(BaseModel):
    id: str
    email: str
    role: Role
    first_name: str
    last_name: str
    phone: str | None = None
    city: str | None = None
    country: str | None = None
    bio: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: str | None = None
    company_name: str | None = None
    created_at: str
    updated_at: str


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    role: Role
    phone: str | None = None
    company_name: str | None = Field(default=None, max_length=120)

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value: Any) -> Any:
        return _upper(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    token: str
    token_type: str = "Bearer"
    expires_at: str
    message: str
    user: UserResponse


class ProfileUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    phone: str | None = None
    city: str | None = None
    country: str | None = None
    bio: str | None = Field(default=None, max_length=2000)
    skills: list[str] | None = None
    experience: str | None = None
    company_name: str | None = Field(default=None, max_length=120)


class JobRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1, max_length=120)
    location: str = Field(..., min_length=1, max_length=120)
    job_type: str = Field(..., min_length=1)
    experience_level: str = Field(..., min_length=1)
    salary_min: float | None = Field(default=None, ge=0)
    salary_max: float | None = Field(default=None, ge=0)
    salary_currency: str = "USD"
    required_skills: list[str]
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    application_deadline: str = Field(..., min_length=1)


class JobRecord(BaseModel):
    id: str
    employer_id: str
    title: str
    description: str
    company_name: str
    location: str
    job_type: str
    experience_level: str
    salary_min: float | None = None
    salary_max: float | None = None
    salary_currency: str = "USD"
    required_skills: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    application_deadline: str
    status: JobStatus = JobStatus.ACTIVE
    total_applications: int = 0
    view_count: int = 0
    created_at: str
    updated_at: str


class JobStatusRequest(BaseModel):
    status: str = Field(..., min_length=1)


class JobStats(BaseModel):
    total_jobs: int
    active_jobs: int
    closed_jobs: int
    draft_jobs: int


class ApplicationRequest(BaseModel):
    job_id: str = Field(..., min_length=1)
    cover_letter: str = Field(..., min_length=1)
    resume_url: str | None = None
    expected_salary: str | None = None
    availability_date: str | None = None
    willing_to_relocate: bool = False


class ApplicationRecord(BaseModel):
    id: str
    job_id: str
    job_seeker_id: str
    cover_letter: str
    resume_url: str | None = None
    expected_salary: str | None = None
    availability_date: str | None = None
    willing_to_relocate: bool = False
    status: ApplicationStatus = ApplicationStatus.PENDING
    employer_notes: str | None = None
    applied_at: str
    reviewed_at: str | None = None
    updated_at: str


class ApplicationStatusRequest(BaseModel):
    status: str = Field(..., min_length=1)
    employer_notes: str | None = Field(default=None, max_length=2000)


class ApplicationStats(BaseModel):
    total_applications: int
    pending_applications: int
    reviewed_applications: int
    shortlisted_applications: int
    rejected_applications: int
    hired_applications: int


class WithdrawResponse(BaseModel):
    withdrawn: bool
    application_id: str
