from __future__ import annotations

import json
import logging

from common.utils import new_record_id, now_utc_iso

from jobboard.errors import ConflictError, NotFoundError, ValidationFailedError
from jobboard.models import (
    ApplicationRecord,
    ApplicationRequest,
    ApplicationStats,
    ApplicationStatus,
    JobRecord,
    VerifiedIdentity,
)
from jobboard.policy import Action, ResourceDescriptor, precheck, require_identity
from jobboard.repository import JobBoardRepository

LOGGER = logging.getLogger("jobboard.applications")

TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset(
        {
            ApplicationStatus.REVIEWED,
            ApplicationStatus.SHORTLISTED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.HIRED,
        }
    ),
    ApplicationStatus.REVIEWED: frozenset(
        {
            ApplicationStatus.SHORTLISTED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.HIRED,
        }
    ),
    ApplicationStatus.SHORTLISTED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.HIRED: frozenset(),
}


def parse_status(value: str) -> ApplicationStatus:
    try:
        return ApplicationStatus(value.strip().upper())
    except ValueError as exc:
        raise ValidationFailedError(f"Invalid application status: {value}") from exc


def is_terminal(status: ApplicationStatus) -> bool:
    return not TRANSITIONS[status]


def check_transition(current: ApplicationStatus, target: ApplicationStatus) -> None:
    """Raise ``ConflictError`` unless ``current -> target`` is allowed.

    Re-entering the current state is accepted so employers can amend notes.
    """
    if target is current or target in TRANSITIONS[current]:
        return
    raise ConflictError(
        f"Cannot change application status from {current.value} to {target.value}"
    )


def mark_modified(
    application: ApplicationRecord,
    *,
    status: ApplicationStatus,
    notes: str | None,
    now: str,
) -> ApplicationRecord:
    """Apply one transition's field changes and timestamps in a single step.

    ``reviewed_at`` is stamped the first time the application leaves PENDING
    and never again.
    """
    changes: dict[str, object] = {"status": status, "updated_at": now}
    if notes is not None:
        changes["employer_notes"] = notes
    if status is not ApplicationStatus.PENDING and application.reviewed_at is None:
        changes["reviewed_at"] = now
    return application.model_copy(update=changes)


class ApplicationWorkflow:
    """Application lifecycle operations, each gated by the authorization policy."""

    def __init__(self, repository: JobBoardRepository) -> None:
        self.repository = repository

    def apply(
        self,
        identity: VerifiedIdentity | None,
        payload: ApplicationRequest,
    ) -> ApplicationRecord:
        applicant = precheck(identity, Action.APPLICATION_APPLY)
        job = self._get_job(payload.job_id)
        now = now_utc_iso()
        application = ApplicationRecord(
            id=new_record_id(),
            job_id=job.id,
            job_seeker_id=applicant.user_id,
            cover_letter=payload.cover_letter,
            resume_url=payload.resume_url,
            expected_salary=payload.expected_salary,
            availability_date=payload.availability_date,
            willing_to_relocate=payload.willing_to_relocate,
            status=ApplicationStatus.PENDING,
            applied_at=now,
            updated_at=now,
        )
        return self.repository.insert_application(application)

    def update_status(
        self,
        identity: VerifiedIdentity | None,
        application_id: str,
        status: str,
        notes: str | None = None,
    ) -> ApplicationRecord:
        precheck(identity, Action.APPLICATION_UPDATE_STATUS)
        target = parse_status(status)
        application = self._get_application(application_id)
        job = self._get_job(application.job_id)
        reviewer = require_identity(
            identity,
            Action.APPLICATION_UPDATE_STATUS,
            ResourceDescriptor.for_application_review(application, job),
        )

        check_transition(application.status, target)
        updated = mark_modified(application, status=target, notes=notes, now=now_utc_iso())
        saved = self.repository.save_application_review(
            updated,
            expected_status=application.status,
        )
        if not saved:
            raise ConflictError("Application was modified concurrently; reload and retry")

        LOGGER.info(
            json.dumps(
                {
                    "event": "application_status_changed",
                    "application_id": application.id,
                    "from_status": application.status.value,
                    "to_status": target.value,
                    "auth_subject": reviewer.subject,
                }
            )
        )
        return updated

    def withdraw(self, identity: VerifiedIdentity | None, application_id: str) -> None:
        precheck(identity, Action.APPLICATION_WITHDRAW)
        application = self._get_application(application_id)
        applicant = require_identity(
            identity,
            Action.APPLICATION_WITHDRAW,
            ResourceDescriptor.for_application_withdrawal(application),
        )
        if application.status is not ApplicationStatus.PENDING:
            raise ConflictError("Cannot withdraw an application that has been reviewed")
        if not self.repository.delete_pending_application(application):
            raise ConflictError("Cannot withdraw an application that has been reviewed")

        LOGGER.info(
            json.dumps(
                {
                    "event": "application_withdrawn",
                    "application_id": application.id,
                    "job_id": application.job_id,
                    "auth_subject": applicant.subject,
                }
            )
        )

    def get(self, identity: VerifiedIdentity | None, application_id: str) -> ApplicationRecord:
        precheck(identity, Action.APPLICATION_VIEW)
        application = self._get_application(application_id)
        job = self._get_job(application.job_id)
        require_identity(
            identity,
            Action.APPLICATION_VIEW,
            ResourceDescriptor.for_application_view(application, job),
        )
        return application

    def list_mine(self, identity: VerifiedIdentity | None, limit: int) -> list[ApplicationRecord]:
        applicant = require_identity(identity, Action.APPLICATION_LIST_MINE)
        return self.repository.list_applications(limit=limit, job_seeker_id=applicant.user_id)

    def list_for_job(
        self,
        identity: VerifiedIdentity | None,
        job_id: str,
        limit: int,
        *,
        action: Action = Action.APPLICATION_LIST_FOR_JOB,
    ) -> list[ApplicationRecord]:
        precheck(identity, action)
        job = self._get_job(job_id)
        require_identity(identity, action, ResourceDescriptor.for_job(job))
        return self.repository.list_applications(limit=limit, job_id=job.id)

    def list_for_my_jobs(
        self,
        identity: VerifiedIdentity | None,
        limit: int,
    ) -> list[ApplicationRecord]:
        employer = require_identity(identity, Action.APPLICATION_LIST_FOR_MY_JOBS)
        return self.repository.list_applications(limit=limit, employer_id=employer.user_id)

    def list_by_status(
        self,
        identity: VerifiedIdentity | None,
        status: str,
        limit: int,
    ) -> list[ApplicationRecord]:
        caller = require_identity(identity, Action.APPLICATION_LIST_BY_STATUS)
        target = parse_status(status)
        return self.repository.list_applications(
            limit=limit,
            status=target,
            party_id=caller.user_id,
        )

    def stats(self, identity: VerifiedIdentity | None) -> ApplicationStats:
        applicant = require_identity(identity, Action.APPLICATION_STATS)
        counts = self.repository.count_applications_by_status(applicant.user_id)
        return ApplicationStats(
            total_applications=sum(counts.values()),
            pending_applications=counts[ApplicationStatus.PENDING],
            reviewed_applications=counts[ApplicationStatus.REVIEWED],
            shortlisted_applications=counts[ApplicationStatus.SHORTLISTED],
            rejected_applications=counts[ApplicationStatus.REJECTED],
            hired_applications=counts[ApplicationStatus.HIRED],
        )

    def _get_application(self, application_id: str) -> ApplicationRecord:
        application = self.repository.get_application(application_id)
        if application is None:
            raise NotFoundError(f"Application not found: {application_id}")
        return application

    def _get_job(self, job_id: str) -> JobRecord:
        job = self.repository.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job
