"""
Tests for the key registry (create/update/delete/list).
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import text

from cardgate.core.exceptions import (
    DuplicateNameError,
    InvalidKeyError,
    KeyNotFoundError,
    QuotaExhaustedError,
)
from cardgate.models.access_key import AccessKey
from cardgate.models.usage_log import UsageLog
from cardgate.services import key_registry
from cardgate.services.key_registry import (
    create_key,
    delete_key,
    list_keys,
    list_usage,
    normalize_days_valid,
    normalize_max_uses,
    update_key,
)
from cardgate.services.key_verifier import verify_access_key
from cardgate.services.usage_accountant import log_usage, record_usage
from cardgate.utils.timeutils import as_utc

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def test_create_key_persists_defaults(db_session):
    """A new key starts unused, active, with a generated code."""
    key = create_key(db_session, "alice", max_uses=10, days_valid=7, now=NOW)

    assert key.id is not None
    assert key.name == "alice"
    assert key.max_uses == 10
    assert key.used_count == 0
    assert key.is_active is True
    assert key.created_at is not None
    assert as_utc(key.expires_at) == NOW + timedelta(days=7)
    assert key.key_code.startswith("sk-")
    assert len(key.key_code) > 20


def test_create_key_codes_are_unique_and_not_derived_from_name(db_session):
    first = create_key(db_session, "first")
    second = create_key(db_session, "second")

    assert first.key_code != second.key_code
    assert "first" not in first.key_code


@pytest.mark.parametrize("raw,expected", [
    (None, 100),
    ("", 100),
    ("abc", 100),
    (0, 100),
    (-5, 100),
    (-1, -1),
    (5, 5),
    ("12", 12),
])
def test_normalize_max_uses(raw, expected):
    assert normalize_max_uses(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    (None, 30),
    (0, 30),
    (-3, 30),
    ("x", 30),
    (1, 1),
    ("90", 90),
    (36500, 36500),
    (36501, 30),
    (3_000_000, 30),
])
def test_normalize_days_valid(raw, expected):
    assert normalize_days_valid(raw) == expected


def test_create_key_applies_defaults_when_omitted(db_session):
    key = create_key(db_session, "defaults", now=NOW)

    assert key.max_uses == 100
    assert as_utc(key.expires_at) == NOW + timedelta(days=30)


def test_create_key_with_huge_day_count_uses_default(db_session):
    key = create_key(db_session, "forever-ish", max_uses=5, days_valid=3_000_000, now=NOW)

    assert as_utc(key.expires_at) == NOW + timedelta(days=30)


def test_create_key_requires_name(db_session):
    with pytest.raises(ValueError):
        create_key(db_session, "   ")


def test_duplicate_name_is_rejected(db_session):
    """createKey("dup") twice yields one key and one DuplicateNameError."""
    create_key(db_session, "dup")

    with pytest.raises(DuplicateNameError) as exc_info:
        create_key(db_session, "dup")

    assert exc_info.value.name == "dup"
    assert "dup" in str(exc_info.value)
    assert [k.name for k in list_keys(db_session)].count("dup") == 1


def test_duplicate_name_check_includes_inactive_keys(db_session):
    key = create_key(db_session, "retired")
    key.is_active = False
    db_session.commit()

    with pytest.raises(DuplicateNameError):
        create_key(db_session, "retired")


def test_unique_constraint_backstops_racing_creates(db_session):
    """If the pre-check misses a concurrent insert, the storage constraint still wins."""
    create_key(db_session, "racer")

    real_lookup = key_registry._find_by_name
    calls = []

    def stale_lookup(db, name):
        # First call simulates a check that ran before the other insert committed
        calls.append(name)
        if len(calls) == 1:
            return None
        return real_lookup(db, name)

    with patch("cardgate.services.key_registry._find_by_name", side_effect=stale_lookup):
        with pytest.raises(DuplicateNameError):
            create_key(db_session, "racer")

    assert db_session.query(AccessKey).filter(AccessKey.name == "racer").count() == 1


def test_update_key_overwrites_quota_and_expiry(db_session):
    key = create_key(db_session, "editable", max_uses=-1, days_valid=1, now=NOW)
    original_code = key.key_code
    new_expiry = NOW + timedelta(days=90)

    updated = update_key(db_session, key.id, max_uses=5, expires_at=new_expiry)

    assert updated.max_uses == 5
    assert as_utc(updated.expires_at) == new_expiry
    assert updated.name == "editable"
    assert updated.key_code == original_code


def test_update_key_can_clear_expiry(db_session):
    key = create_key(db_session, "forever", now=NOW)

    updated = update_key(db_session, key.id, max_uses=-1, expires_at=None)

    assert updated.expires_at is None
    assert updated.max_uses == -1


def test_update_key_converts_offset_expiry_to_utc(db_session):
    key = create_key(db_session, "offset", now=NOW)
    plus_eight = timezone(timedelta(hours=8))

    updated = update_key(
        db_session, key.id, max_uses=3,
        expires_at=datetime(2026, 12, 1, 20, 0, tzinfo=plus_eight),
    )

    assert as_utc(updated.expires_at) == datetime(2026, 12, 1, 12, 0, tzinfo=timezone.utc)


def test_update_missing_key_raises_not_found(db_session):
    with pytest.raises(KeyNotFoundError):
        update_key(db_session, 999999, max_uses=5, expires_at=None)


def test_update_key_changes_admission(db_session):
    """Capping an unlimited key at 5 admits the 5th verify and rejects the 6th."""
    key = create_key(db_session, "capped-later", max_uses=-1, now=NOW)
    for _ in range(4):
        verify_access_key(db_session, key.key_code, now=NOW)
        record_usage(db_session, key.id, "127.0.0.1", "text", success=True)

    update_key(db_session, key.id, max_uses=5, expires_at=None)

    verify_access_key(db_session, key.key_code, now=NOW)
    record_usage(db_session, key.id, "127.0.0.1", "text", success=True)

    with pytest.raises(QuotaExhaustedError):
        verify_access_key(db_session, key.key_code, now=NOW)


def test_delete_key_removes_logs_and_key(db_session):
    key = create_key(db_session, "doomed")
    code = key.key_code
    key_id = key.id
    log_usage(db_session, key_id, "10.0.0.1", "hello", True)
    log_usage(db_session, key_id, "10.0.0.1", "again", False, "boom")

    delete_key(db_session, key_id)

    assert db_session.query(UsageLog).filter(UsageLog.key_id == key_id).count() == 0
    assert db_session.query(AccessKey).filter(AccessKey.id == key_id).first() is None
    assert list_usage(db_session, key_id) == []
    with pytest.raises(InvalidKeyError):
        verify_access_key(db_session, code)


def test_storage_cascade_removes_logs_of_deleted_key(db_session):
    """Deleting the key row directly still drops its logs through the foreign key."""
    key = create_key(db_session, "raw-delete")
    key_id = key.id
    log_usage(db_session, key_id, "10.0.0.1", "hello", True)

    db_session.execute(text("DELETE FROM access_keys WHERE id = :id"), {"id": key_id})
    db_session.commit()

    assert db_session.query(UsageLog).filter(UsageLog.key_id == key_id).count() == 0


def test_delete_missing_key_is_noop(db_session):
    delete_key(db_session, 424242)


def test_list_keys_newest_first(db_session):
    create_key(db_session, "older")
    create_key(db_session, "newer")

    names = [k.name for k in list_keys(db_session)]

    assert names == ["newer", "older"]


def test_list_usage_is_capped_and_newest_first(db_session):
    key = create_key(db_session, "chatty")
    for i in range(55):
        log_usage(db_session, key.id, "127.0.0.1", f"request {i}", True)

    logs = list_usage(db_session, key.id)

    assert len(logs) == 50
    assert logs[0].request_text.endswith("request 54")
    assert logs[-1].request_text.endswith("request 5")


def test_list_usage_only_returns_own_logs(db_session):
    mine = create_key(db_session, "mine")
    other = create_key(db_session, "other")
    log_usage(db_session, mine.id, "1.1.1.1", "a", True)
    log_usage(db_session, other.id, "2.2.2.2", "b", True)

    logs = list_usage(db_session, mine.id)

    assert [log.key_id for log in logs] == [mine.id]


def test_list_usage_honors_explicit_limit(db_session):
    key = create_key(db_session, "limited")
    for i in range(3):
        log_usage(db_session, key.id, "127.0.0.1", f"request {i}", True)

    assert len(list_usage(db_session, key.id, limit=2)) == 2
    assert list_usage(db_session, key.id, limit=0) == []
