from __future__ import annotations

from common.utils import new_record_id, normalize_whitespace, now_utc_iso

from jobboard.errors import NotFoundError, ValidationFailedError
from jobboard.models import JobRecord, JobRequest, JobStats, JobStatus, VerifiedIdentity
from jobboard.policy import Action, ResourceDescriptor, enforce, precheck, require_identity
from jobboard.repository import JobBoardRepository


def parse_job_status(value: str) -> JobStatus:
    try:
        return JobStatus(value.strip().upper())
    except ValueError as exc:
        raise ValidationFailedError(f"Invalid job status: {value}") from exc


def _job_fields(payload: JobRequest) -> dict[str, object]:
    fields = payload.model_dump()
    for name in ("title", "company_name", "location"):
        fields[name] = normalize_whitespace(fields[name])
    fields["required_skills"] = [skill.strip() for skill in payload.required_skills if skill.strip()]
    fields["tags"] = [tag.strip() for tag in payload.tags if tag.strip()]
    return fields


class JobCatalog:
    def __init__(self, repository: JobBoardRepository) -> None:
        self.repository = repository

    def create(self, identity: VerifiedIdentity | None, payload: JobRequest) -> JobRecord:
        employer = require_identity(identity, Action.JOB_CREATE)
        if (
            payload.salary_min is not None
            and payload.salary_max is not None
            and payload.salary_min > payload.salary_max
        ):
            raise ValidationFailedError("salary_min cannot exceed salary_max")
        now = now_utc_iso()
        job = JobRecord(
            id=new_record_id(),
            employer_id=employer.user_id,
            status=JobStatus.ACTIVE,
            created_at=now,
            updated_at=now,
            **_job_fields(payload),
        )
        return self.repository.insert_job(job)

    def update(
        self,
        identity: VerifiedIdentity | None,
        job_id: str,
        payload: JobRequest,
    ) -> JobRecord:
        job = self._get_owned_job(identity, job_id, Action.JOB_UPDATE)
        updated = job.model_copy(update={**_job_fields(payload), "updated_at": now_utc_iso()})
        return self.repository.save_job_details(updated)

    def delete(self, identity: VerifiedIdentity | None, job_id: str) -> None:
        job = self._get_owned_job(identity, job_id, Action.JOB_DELETE)
        self.repository.delete_job(job.id)

    def change_status(
        self,
        identity: VerifiedIdentity | None,
        job_id: str,
        status: str,
    ) -> JobRecord:
        precheck(identity, Action.JOB_CHANGE_STATUS)
        target = parse_job_status(status)
        job = self._get_owned_job(identity, job_id, Action.JOB_CHANGE_STATUS)
        return self.repository.set_job_status(job.id, target, now_utc_iso())

    def view_public(self, identity: VerifiedIdentity | None, job_id: str) -> JobRecord:
        enforce(identity, Action.JOB_VIEW_PUBLIC)
        job = self.repository.record_job_view(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job

    def list_public(self, identity: VerifiedIdentity | None, limit: int) -> list[JobRecord]:
        enforce(identity, Action.JOB_LIST_PUBLIC)
        return self.repository.list_jobs_by_status(JobStatus.ACTIVE, limit)

    def list_mine(self, identity: VerifiedIdentity | None, limit: int) -> list[JobRecord]:
        employer = require_identity(identity, Action.JOB_LIST_MINE)
        return self.repository.list_jobs_by_employer(employer.user_id, limit)

    def stats(self, identity: VerifiedIdentity | None) -> JobStats:
        employer = require_identity(identity, Action.JOB_STATS)
        counts = self.repository.count_jobs_by_status(employer.user_id)
        return JobStats(
            total_jobs=sum(counts.values()),
            active_jobs=counts[JobStatus.ACTIVE],
            closed_jobs=counts[JobStatus.CLOSED],
            draft_jobs=counts[JobStatus.DRAFT],
        )

    def _get_owned_job(
        self,
        identity: VerifiedIdentity | None,
        job_id: str,
        action: Action,
    ) -> JobRecord:
        precheck(identity, action)
        job = self.repository.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        require_identity(identity, action, ResourceDescriptor.for_job(job))
        return job
