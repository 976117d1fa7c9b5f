"""
Record store smoke tests: schema, constraints and directory data.
"""
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from gatepass.core import dao
from gatepass.core.db import get_db, health_check, init_db
from gatepass.core.schema import Person, Role

T = datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc)


def test_database_health(test_db):
    """Test that database initializes correctly."""
    assert health_check() == True, "Database should be healthy"


def test_init_db_is_idempotent(test_db):
    init_db()
    assert health_check()


def test_directory_round_trip(test_db):
    dao.upsert_person(Person(id="student-9", name="Sam", role=Role.REQUESTER, external_id="STU009"))
    dao.upsert_person(Person(id="student-9", name="Samantha", role=Role.REQUESTER, external_id="STU009"))

    person = dao.get_person("student-9")
    assert person.name == "Samantha", "Upsert should replace the name"
    assert person.role == Role.REQUESTER
    assert dao.get_person("missing") is None

    dao.assign_to_roster("advisor-9", ["student-9", "student-10"])
    dao.assign_to_roster("advisor-9", ["student-9"])
    assert dao.get_roster("advisor-9") == frozenset({"student-9", "student-10"})
    assert dao.get_roster("nobody") == frozenset()


def test_scan_events_are_append_only(test_db):
    event_id = dao.append_scan_event("guard-1", "bad", False, T, failure_reason="MalformedToken")

    with get_db() as conn:
        with pytest.raises(sqlite3.DatabaseError, match="append-only"):
            conn.execute("UPDATE scan_events SET valid = 1 WHERE id = ?", (event_id,))
        with pytest.raises(sqlite3.DatabaseError, match="append-only"):
            conn.execute("DELETE FROM scan_events WHERE id = ?", (event_id,))


def test_token_present_only_when_approved(make_request):
    request = make_request()
    with get_db() as conn:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE leave_requests SET access_token = 'a-b-c-d' WHERE id = ?", (request.id,))
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE leave_requests SET status = 'approved' WHERE id = ?", (request.id,))


def test_access_tokens_are_unique(make_request, approve_all):
    first = approve_all(make_request())
    second = approve_all(make_request())
    with get_db() as conn:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE leave_requests SET access_token = ? WHERE id = ?",
                         (first.access_token, second.id))


def test_window_must_be_positive_in_store(make_request):
    request = make_request()
    with get_db() as conn:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE leave_requests SET to_instant = from_instant WHERE id = ?", (request.id,))


def test_timestamps_round_trip_as_utc(test_db):
    local = datetime(2030, 1, 1, 13, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    stored = dao.format_ts(local)
    assert stored == "2030-01-01T08:00:00.000000+00:00"
    assert dao.parse_ts(stored) == T
    assert dao.format_ts(None) is None


def test_request_count(make_request):
    assert dao.get_request_count() == 0
    make_request()
    make_request()
    assert dao.get_request_count() == 2
