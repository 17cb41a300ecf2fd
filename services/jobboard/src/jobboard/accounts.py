from __future__ import annotations

from common.utils import new_record_id, normalize_whitespace, now_utc_iso
from passlib.context import CryptContext

from jobboard.errors import NotFoundError, UnauthenticatedError
from jobboard.models import (
    AuthResponse,
    LoginRequest,
    ProfileUpdateRequest,
    Role,
    SignupRequest,
    UserRecord,
    UserResponse,
    VerifiedIdentity,
)
from jobboard.policy import Action, ResourceDescriptor, precheck, require_identity
from jobboard.repository import JobBoardRepository
from jobboard.tokens import TokenService

PWD_CONTEXT = CryptContext(schemes=["bcrypt"], deprecated="auto")

ROLE_PROFILE_FIELDS: dict[Role, frozenset[str]] = {
    Role.JOB_SEEKER: frozenset({"bio", "skills", "experience"}),
    Role.EMPLOYER: frozenset({"company_name"}),
}
ALL_ROLE_PROFILE_FIELDS = frozenset().union(*ROLE_PROFILE_FIELDS.values())


def hash_password(password: str) -> str:
    return PWD_CONTEXT.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a stored hash.

    A hash that passlib cannot identify counts as a mismatch.
    """
    try:
        return PWD_CONTEXT.verify(password, password_hash)
    except ValueError:
        return False


class AccountService:
    def __init__(self, repository: JobBoardRepository, tokens: TokenService) -> None:
        self.repository = repository
        self.tokens = tokens

    def signup(self, payload: SignupRequest) -> AuthResponse:
        now = now_utc_iso()
        company_name = None
        if payload.company_name and "company_name" in ROLE_PROFILE_FIELDS[payload.role]:
            company_name = normalize_whitespace(payload.company_name)
        user = self.repository.create_user(
            UserRecord(
                id=new_record_id(),
                email=str(payload.email).lower(),
                password_hash=hash_password(payload.password),
                role=payload.role,
                first_name=normalize_whitespace(payload.first_name),
                last_name=normalize_whitespace(payload.last_name),
                phone=payload.phone,
                company_name=company_name,
                created_at=now,
                updated_at=now,
            )
        )
        return self._auth_response(user, message="User registered successfully")

    def login(self, payload: LoginRequest) -> AuthResponse:
        user = self.repository.find_user_by_email(str(payload.email).lower())
        # Same error for unknown email and wrong password.
        if user is None or not verify_password(payload.password, user.password_hash):
            raise UnauthenticatedError("Invalid email or password")
        return self._auth_response(user, message="Login successful")

    def me(self, identity: VerifiedIdentity | None) -> UserResponse:
        caller = require_identity(identity, Action.AUTH_ME)
        return self._get_user(caller.user_id).to_response()

    def get_profile(self, identity: VerifiedIdentity | None, user_id: str) -> UserResponse:
        require_identity(identity, Action.USER_VIEW)
        return self._get_user(user_id).to_response()

    def update_profile(
        self,
        identity: VerifiedIdentity | None,
        user_id: str,
        payload: ProfileUpdateRequest,
    ) -> UserResponse:
        precheck(identity, Action.USER_UPDATE)
        user = self._get_user(user_id)
        require_identity(identity, Action.USER_UPDATE, ResourceDescriptor.for_user_profile(user))

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        for field_name in ALL_ROLE_PROFILE_FIELDS - ROLE_PROFILE_FIELDS[user.role]:
            changes.pop(field_name, None)
        changes["updated_at"] = now_utc_iso()
        updated = self.repository.save_user(user.model_copy(update=changes))
        return updated.to_response()

    def list_job_seekers(self, identity: VerifiedIdentity | None, limit: int) -> list[UserResponse]:
        require_identity(identity, Action.USER_LIST_JOB_SEEKERS)
        return [
            user.to_response() for user in self.repository.list_users_by_role(Role.JOB_SEEKER, limit)
        ]

    def _auth_response(self, user: UserRecord, *, message: str) -> AuthResponse:
        issued = self.tokens.issue(user.email)
        return AuthResponse(
            token=issued.token,
            expires_at=issued.claims.expires_at.isoformat(),
            message=message,
            user=user.to_response(),
        )

    def _get_user(self, user_id: str) -> UserRecord:
        user = self.repository.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user
