from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from jobboard.errors import ForbiddenError, UnauthenticatedError
from jobboard.models import (
    ApplicationRecord,
    ApplicationStatus,
    JobRecord,
    Role,
    UserRecord,
    VerifiedIdentity,
)

LOGGER = logging.getLogger("jobboard.auth")


class Action(str, Enum):
    AUTH_SIGNUP = "POST /auth/signup"
    AUTH_LOGIN = "POST /auth/login"
    AUTH_ME = "GET /auth/me"
    JOB_VIEW_PUBLIC = "GET /jobs/public/{id}"
    JOB_LIST_PUBLIC = "GET /jobs/public/all"
    JOB_CREATE = "POST /jobs/create"
    JOB_LIST_MINE = "GET /jobs/my-jobs"
    JOB_STATS = "GET /jobs/stats"
    JOB_CHANGE_STATUS = "PATCH /jobs/{id}/status"
    JOB_UPDATE = "PUT /jobs/{id}"
    JOB_DELETE = "DELETE /jobs/{id}"
    JOB_APPLICANTS = "GET /jobs/{id}/applicants"
    APPLICATION_APPLY = "POST /applications/apply"
    APPLICATION_LIST_MINE = "GET /applications/my-applications"
    APPLICATION_STATS = "GET /applications/stats"
    APPLICATION_LIST_FOR_MY_JOBS = "GET /applications/my-job-applications"
    APPLICATION_LIST_FOR_JOB = "GET /applications/job/{id}"
    APPLICATION_UPDATE_STATUS = "PATCH /applications/{id}/status"
    APPLICATION_VIEW = "GET /applications/{id}"
    APPLICATION_LIST_BY_STATUS = "GET /applications/status/{status}"
    APPLICATION_WITHDRAW = "DELETE /applications/{id}/withdraw"
    USER_VIEW = "GET /users/{id}"
    USER_UPDATE = "PUT /users/{id}"
    USER_LIST_JOB_SEEKERS = "GET /users/job-seekers"


class ResourceKind(str, Enum):
    JOB = "JOB"
    APPLICATION = "APPLICATION"
    USER_PROFILE = "USER_PROFILE"


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    WRONG_ROLE = "wrong_role"
    NOT_OWNER = "not_owner"


@dataclass(frozen=True)
class Requirement:
    public: bool = False
    role: Role | None = None
    ownership: bool = False


PUBLIC = Requirement(public=True)
AUTHENTICATED = Requirement()
EMPLOYER = Requirement(role=Role.EMPLOYER)
JOB_SEEKER = Requirement(role=Role.JOB_SEEKER)
EMPLOYER_OWNER = Requirement(role=Role.EMPLOYER, ownership=True)
OWNER = Requirement(ownership=True)

REQUIREMENTS: dict[Action, Requirement] = {
    Action.AUTH_SIGNUP: PUBLIC,
    Action.AUTH_LOGIN: PUBLIC,
    Action.AUTH_ME: AUTHENTICATED,
    Action.JOB_VIEW_PUBLIC: PUBLIC,
    Action.JOB_LIST_PUBLIC: PUBLIC,
    Action.JOB_CREATE: EMPLOYER,
    Action.JOB_LIST_MINE: EMPLOYER,
    Action.JOB_STATS: EMPLOYER,
    Action.JOB_CHANGE_STATUS: EMPLOYER_OWNER,
    Action.JOB_UPDATE: EMPLOYER_OWNER,
    Action.JOB_DELETE: EMPLOYER_OWNER,
    Action.JOB_APPLICANTS: EMPLOYER_OWNER,
    Action.APPLICATION_APPLY: JOB_SEEKER,
    Action.APPLICATION_LIST_MINE: JOB_SEEKER,
    Action.APPLICATION_STATS: JOB_SEEKER,
    Action.APPLICATION_LIST_FOR_MY_JOBS: EMPLOYER,
    Action.APPLICATION_LIST_FOR_JOB: EMPLOYER_OWNER,
    Action.APPLICATION_UPDATE_STATUS: EMPLOYER_OWNER,
    Action.APPLICATION_VIEW: OWNER,
    Action.APPLICATION_LIST_BY_STATUS: AUTHENTICATED,
    Action.APPLICATION_WITHDRAW: OWNER,
    Action.USER_VIEW: AUTHENTICATED,
    Action.USER_UPDATE: OWNER,
    Action.USER_LIST_JOB_SEEKERS: EMPLOYER,
}


@dataclass(frozen=True)
class ResourceDescriptor:
    """Ownership view of an entity, built from stored records only."""

    kind: ResourceKind
    owner_id: str
    state: ApplicationStatus | None = None
    shared_with: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def for_job(cls, job: JobRecord) -> ResourceDescriptor:
        return cls(kind=ResourceKind.JOB, owner_id=job.employer_id)

    @classmethod
    def for_application_review(
        cls,
        application: ApplicationRecord,
        job: JobRecord,
    ) -> ResourceDescriptor:
        return cls(
            kind=ResourceKind.APPLICATION,
            owner_id=job.employer_id,
            state=application.status,
        )

    @classmethod
    def for_application_withdrawal(cls, application: ApplicationRecord) -> ResourceDescriptor:
        return cls(
            kind=ResourceKind.APPLICATION,
            owner_id=application.job_seeker_id,
            state=application.status,
        )

    @classmethod
    def for_application_view(
        cls,
        application: ApplicationRecord,
        job: JobRecord,
    ) -> ResourceDescriptor:
        return cls(
            kind=ResourceKind.APPLICATION,
            owner_id=application.job_seeker_id,
            state=application.status,
            shared_with=frozenset({job.employer_id}),
        )

    @classmethod
    def for_user_profile(cls, user: UserRecord) -> ResourceDescriptor:
        return cls(kind=ResourceKind.USER_PROFILE, owner_id=user.id)

    def is_owned_by(self, user_id: str) -> bool:
        return user_id == self.owner_id or user_id in self.shared_with


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None

    @classmethod
    def allow(cls) -> Decision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason) -> Decision:
        return cls(allowed=False, reason=reason)


def authorize(
    identity: VerifiedIdentity | None,
    action: Action,
    resource: ResourceDescriptor | None = None,
    *,
    check_ownership: bool = True,
) -> Decision:
    """Decide whether ``identity`` may perform ``action`` on ``resource``.

    Rules are checked in order and the first match wins: public route, missing
    identity, role mismatch, ownership mismatch, otherwise allow. An action that
    needs ownership is denied when no resource is supplied, unless
    ``check_ownership`` is off (used to reject callers before any lookup).
    """
    requirement = REQUIREMENTS[action]
    if requirement.public:
        return Decision.allow()
    if identity is None:
        return Decision.deny(DenyReason.UNAUTHENTICATED)
    if requirement.role is not None and identity.role is not requirement.role:
        return Decision.deny(DenyReason.WRONG_ROLE)
    if (
        check_ownership
        and requirement.ownership
        and (resource is None or not resource.is_owned_by(identity.user_id))
    ):
        return Decision.deny(DenyReason.NOT_OWNER)
    return Decision.allow()


def enforce(
    identity: VerifiedIdentity | None,
    action: Action,
    resource: ResourceDescriptor | None = None,
    *,
    check_ownership: bool = True,
) -> VerifiedIdentity | None:
    decision = authorize(identity, action, resource, check_ownership=check_ownership)
    if decision.allowed:
        return identity

    LOGGER.info(
        json.dumps(
            {
                "event": "authorization_denied",
                "action": action.value,
                "reason": decision.reason.value if decision.reason else None,
                "auth_subject": identity.subject if identity else None,
            }
        )
    )
    if decision.reason is DenyReason.UNAUTHENTICATED:
        raise UnauthenticatedError()
    raise ForbiddenError()


def require_identity(
    identity: VerifiedIdentity | None,
    action: Action,
    resource: ResourceDescriptor | None = None,
) -> VerifiedIdentity:
    """``enforce`` for actions that can never be public."""
    allowed = enforce(identity, action, resource)
    if allowed is None:
        raise UnauthenticatedError()
    return allowed


def precheck(identity: VerifiedIdentity | None, action: Action) -> VerifiedIdentity:
    """Apply the identity and role rules before the resource has been loaded.

    Anonymous and wrong-role callers are turned away without learning whether
    the resource exists.
    """
    allowed = enforce(identity, action, check_ownership=False)
    if allowed is None:
        raise UnauthenticatedError()
    return allowed
