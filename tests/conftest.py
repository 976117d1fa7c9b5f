"""Shared fixtures: a temporary database, a seeded directory and request builders."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from gatepass.core import approval, config, dao
from gatepass.core.db import init_db
from gatepass.core.schema import Identity, Person, Role, Stage

# Leave window start used across tests; requests are created an hour before it
T = datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_db(tmp_path, monkeypatch):
    """Point the record store at a fresh temporary database."""
    db_path = str(tmp_path / "gatepass_test.db")
    monkeypatch.setattr(config, "DB_PATH", db_path)
    init_db()
    return db_path


@pytest.fixture
def people(test_db):
    """Directory with two requesters, two advisors and one of every other role."""
    directory = [
        Person(id="student-1", name="John Student", role=Role.REQUESTER, external_id="STU001"),
        Person(id="student-2", name="Jane Student", role=Role.REQUESTER, external_id="STU002"),
        Person(id="advisor-1", name="Dr. Smith Advisor", role=Role.ADVISOR),
        Person(id="advisor-2", name="Dr. Jones Advisor", role=Role.ADVISOR),
        Person(id="hod-1", name="Prof. Johnson HOD", role=Role.DEPARTMENT_HEAD),
        Person(id="warden-1", name="Mr. Wilson Warden", role=Role.WARDEN),
        Person(id="guard-1", name="Security Guard", role=Role.GATE_STAFF),
        Person(id="guard-2", name="Night Guard", role=Role.GATE_STAFF),
    ]
    for person in directory:
        dao.upsert_person(person)
    dao.assign_to_roster("advisor-1", ["student-1"])
    dao.assign_to_roster("advisor-2", ["student-2"])

    return SimpleNamespace(
        student=Identity(id="student-1", role=Role.REQUESTER),
        other_student=Identity(id="student-2", role=Role.REQUESTER),
        advisor=Identity(id="advisor-1", role=Role.ADVISOR, roster=dao.get_roster("advisor-1")),
        other_advisor=Identity(id="advisor-2", role=Role.ADVISOR, roster=dao.get_roster("advisor-2")),
        hod=Identity(id="hod-1", role=Role.DEPARTMENT_HEAD),
        warden=Identity(id="warden-1", role=Role.WARDEN),
        guard=Identity(id="guard-1", role=Role.GATE_STAFF),
        other_guard=Identity(id="guard-2", role=Role.GATE_STAFF),
    )


@pytest.fixture
def make_request(people):
    """Create a leave request for a requester, defaulting to [T, T+2d]."""
    def _make(requester=None, from_instant=T, to_instant=None, now=None, **fields):
        requester = requester or people.student
        return approval.create_request(
            requester,
            from_instant=from_instant,
            to_instant=to_instant or from_instant + timedelta(days=2),
            reason=fields.get("reason", "Family function"),
            destination=fields.get("destination", "Home town"),
            emergency_contact=fields.get("emergency_contact", "+1 555 0100"),
            attachment=fields.get("attachment"),
            now=now or from_instant - timedelta(hours=1),
        )
    return _make


@pytest.fixture
def approve_all(people):
    """Run a request through all three stages, returning the final record."""
    def _approve(request, advisor=None, now=None):
        now = now or T - timedelta(minutes=30)
        approval.decide(request.id, Stage.ADVISOR, advisor or people.advisor, "approved", now=now)
        approval.decide(request.id, Stage.DEPARTMENT_HEAD, people.hod, "approved", now=now)
        return approval.decide(request.id, Stage.WARDEN, people.warden, "approved", now=now)
    return _approve
