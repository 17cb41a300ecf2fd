from __future__ import annotations

import uuid
from datetime import UTC, datetime


def now_utc() -> datetime:
    return datetime.now(UTC)


def now_utc_iso() -> str:
    return now_utc().isoformat()


def new_record_id() -> str:
    return uuid.uuid4().hex


def normalize_whitespace(text: str) -> str:
    return " ".join(text.split())
