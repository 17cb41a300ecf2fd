from __future__ import annotations

from datetime import datetime

import pytest
from common.utils import new_record_id, normalize_whitespace, now_utc, now_utc_iso

pytestmark = pytest.mark.unit


def test_normalize_whitespace_collapses_runs() -> None:
    assert normalize_whitespace("  Backend \n  Engineer\t") == "Backend Engineer"


def test_normalize_whitespace_returns_empty_string_for_blank_text() -> None:
    assert normalize_whitespace("   ") == ""


def test_now_utc_iso_returns_parseable_utc_timestamp() -> None:
    parsed = datetime.fromisoformat(now_utc_iso())
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() is not None
    assert parsed.utcoffset().total_seconds() == 0


def test_now_utc_is_timezone_aware() -> None:
    assert now_utc().utcoffset().total_seconds() == 0


def test_new_record_id_is_unique_hex() -> None:
    first = new_record_id()
    second = new_record_id()
    assert first != second
    assert len(first) == 32
    int(first, 16)
