"""
Record store access for people, leave requests and scan events.

Writes that depend on previously read state are conditional: the UPDATE repeats
the observed state in its WHERE clause and reports whether a row matched.
"""

import sqlite3
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional

from .db import get_db
from .schema import (
    STAGE_ORDER,
    ApprovalChain,
    ApprovalStatus,
    Direction,
    LeaveRequest,
    Person,
    Role,
    ScanEvent,
    ScanState,
    Stage,
    StageDecision,
    to_utc,
)


def format_ts(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width UTC ISO string, so stored instants order correctly as text."""
    if value is None:
        return None
    return to_utc(value).isoformat(timespec="microseconds")


def parse_ts(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return to_utc(datetime.fromisoformat(value))


# People and rosters

def upsert_person(person: Person) -> None:
    with get_db() as conn:
        conn.execute(
            "INSERT INTO people (id, name, role, external_id) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET name = excluded.name, role = excluded.role, "
            "external_id = excluded.external_id",
            (person.id, person.name, Role(person.role).value, person.external_id)
        )
        conn.commit()


def get_person(person_id: str) -> Optional[Person]:
    with get_db() as conn:
        row = conn.execute(
            "SELECT id, name, role, external_id FROM people WHERE id = ?", (person_id,)
        ).fetchone()
    if row is None:
        return None
    return Person(id=row["id"], name=row["name"], role=Role(row["role"]), external_id=row["external_id"])


def assign_to_roster(advisor_id: str, requester_ids: Iterable[str]) -> None:
    with get_db() as conn:
        conn.executemany(
            "INSERT OR IGNORE INTO roster (advisor_id, requester_id) VALUES (?, ?)",
            [(advisor_id, requester_id) for requester_id in requester_ids]
        )
        conn.commit()


def get_roster(advisor_id: str) -> FrozenSet[str]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT requester_id FROM roster WHERE advisor_id = ?", (advisor_id,)
        ).fetchall()
    return frozenset(row["requester_id"] for row in rows)


# Leave requests

def _row_to_request(row: sqlite3.Row) -> LeaveRequest:
    decisions = {}
    for stage in STAGE_ORDER:
        decisions[stage.value] = StageDecision(
            status=ApprovalStatus(row[f"{stage.value}_status"]),
            comment=row[f"{stage.value}_comment"],
            decided_at=parse_ts(row[f"{stage.value}_decided_at"]),
            decided_by=row[f"{stage.value}_decided_by"],
        )
    return LeaveRequest(
        id=row["id"],
        requester_id=row["requester_id"],
        from_instant=parse_ts(row["from_instant"]),
        to_instant=parse_ts(row["to_instant"]),
        reason=row["reason"],
        destination=row["destination"],
        emergency_contact=row["emergency_contact"],
        attachment=row["attachment"],
        approvals=ApprovalChain(**decisions),
        access_token=row["access_token"],
        token_expires_at=parse_ts(row["token_expires_at"]),
        scan_state=ScanState(row["scan_state"]),
        exited_at=parse_ts(row["exited_at"]),
        returned_at=parse_ts(row["returned_at"]),
        created_at=parse_ts(row["created_at"]),
        updated_at=parse_ts(row["updated_at"]),
    )


def insert_leave_request(request: LeaveRequest) -> None:
    with get_db() as conn:
        conn.execute(
            '''
            INSERT INTO leave_requests (
                id, requester_id, from_instant, to_instant, reason, destination,
                emergency_contact, attachment, status, scan_state, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''',
            (
                request.id, request.requester_id,
                format_ts(request.from_instant), format_ts(request.to_instant),
                request.reason, request.destination, request.emergency_contact,
                request.attachment, request.status.value, request.scan_state.value,
                format_ts(request.created_at), format_ts(request.updated_at),
            )
        )
        conn.commit()


def get_leave_request(request_id: str) -> Optional[LeaveRequest]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM leave_requests WHERE id = ?", (request_id,)).fetchone()
    return _row_to_request(row) if row else None


def find_by_token(token: str) -> Optional[LeaveRequest]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM leave_requests WHERE access_token = ?", (token,)).fetchone()
    return _row_to_request(row) if row else None


def list_leave_requests(requester_ids: Optional[Iterable[str]] = None,
                        approved_stage: Optional[Stage] = None,
                        pending_stage: Optional[Stage] = None,
                        status: Optional[ApprovalStatus] = None,
                        limit: int = 200) -> List[LeaveRequest]:
    """List leave requests, newest created first.

    ``requester_ids`` restricts to those requesters (an empty collection matches
    nothing); ``approved_stage`` restricts to requests whose given stage is approved
    and ``pending_stage`` to live requests still waiting on the given stage.
    """
    clauses = []
    params = []

    if requester_ids is not None:
        ids = list(requester_ids)
        if not ids:
            return []
        clauses.append(f"requester_id IN ({', '.join('?' for _ in ids)})")
        params.extend(ids)

    if approved_stage is not None:
        clauses.append(f"{Stage(approved_stage).value}_status = 'approved'")

    if pending_stage is not None:
        clauses.append(f"{Stage(pending_stage).value}_status = 'pending' AND status = 'pending'")

    if status is not None:
        clauses.append("status = ?")
        params.append(ApprovalStatus(status).value)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    params.append(limit)

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM leave_requests {where} ORDER BY created_at DESC, rowid DESC LIMIT ?",
            params
        ).fetchall()
    return [_row_to_request(row) for row in rows]


def record_decision(request_id: str, stage: Stage, decision: StageDecision,
                    overall_status: ApprovalStatus, updated_at: datetime,
                    access_token: Optional[str] = None,
                    token_expires_at: Optional[datetime] = None) -> bool:
    """Write a stage decision if the request and the stage are still pending.

    Returns False when the conditional write matched no row. A duplicate
    access token surfaces as sqlite3.IntegrityError.
    """
    column = Stage(stage).value
    with get_db() as conn:
        cursor = conn.execute(
            f'''
            UPDATE leave_requests
            SET {column}_status = ?, {column}_comment = ?, {column}_decided_at = ?,
                {column}_decided_by = ?, status = ?, access_token = ?,
                token_expires_at = ?, updated_at = ?
            WHERE id = ? AND status = 'pending' AND {column}_status = 'pending'
            ''',
            (
                decision.status.value, decision.comment, format_ts(decision.decided_at),
                decision.decided_by, overall_status.value, access_token,
                format_ts(token_expires_at), format_ts(updated_at), request_id,
            )
        )
        conn.commit()
        return cursor.rowcount == 1


# Scan events

def _insert_scan_event(conn: sqlite3.Connection, staff_id: str, presented_token: str,
                       valid: bool, recorded_at: datetime, request_id: Optional[str],
                       direction: Optional[Direction], failure_reason: Optional[str]) -> int:
    cursor = conn.execute(
        '''
        INSERT INTO scan_events (
            request_id, staff_id, presented_token, direction, valid, failure_reason, recorded_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        ''',
        (
            request_id, staff_id, presented_token,
            Direction(direction).value if direction else None,
            1 if valid else 0, failure_reason, format_ts(recorded_at),
        )
    )
    return cursor.lastrowid


def append_scan_event(staff_id: str, presented_token: str, valid: bool, recorded_at: datetime,
                      request_id: Optional[str] = None, direction: Optional[Direction] = None,
                      failure_reason: Optional[str] = None) -> int:
    """Append one scan event and return its id."""
    with get_db() as conn:
        event_id = _insert_scan_event(conn, staff_id, presented_token, valid, recorded_at,
                                      request_id, direction, failure_reason)
        conn.commit()
        return event_id


def record_scan(request: LeaveRequest, staff_id: str, presented_token: str,
                direction: Direction, new_state: ScanState, scanned_at: datetime) -> Optional[int]:
    """Advance the scan state and append the matching scan event in one transaction.

    The update only applies if the scan state is still the one ``request`` was
    read with. Returns the event id, or None when the state had moved.
    """
    timestamp_column = "exited_at" if direction == Direction.EXIT else "returned_at"
    with get_db() as conn:
        try:
            cursor = conn.execute(
                f'''
                UPDATE leave_requests
                SET scan_state = ?, {timestamp_column} = ?, updated_at = ?
                WHERE id = ? AND scan_state = ? AND status = 'approved'
                ''',
                (
                    new_state.value, format_ts(scanned_at), format_ts(scanned_at),
                    request.id, request.scan_state.value,
                )
            )
            if cursor.rowcount != 1:
                conn.rollback()
                return None
            event_id = _insert_scan_event(conn, staff_id, presented_token, True, scanned_at,
                                          request.id, direction, None)
            conn.commit()
            return event_id
        except sqlite3.Error:
            conn.rollback()
            raise


def list_scan_events(staff_id: str, limit: int = 100) -> List[ScanEvent]:
    """Scan events recorded by one staff member, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            '''
            SELECT e.id, e.request_id, e.staff_id, e.presented_token, e.direction, e.valid,
                   e.failure_reason, e.recorded_at, p.name AS requester_name
            FROM scan_events e
            LEFT JOIN leave_requests r ON r.id = e.request_id
            LEFT JOIN people p ON p.id = r.requester_id
            WHERE e.staff_id = ?
            ORDER BY e.recorded_at DESC, e.id DESC
            LIMIT ?
            ''',
            (staff_id, limit)
        ).fetchall()

    return [
        ScanEvent(
            id=row["id"],
            staff_id=row["staff_id"],
            presented_token=row["presented_token"],
            valid=bool(row["valid"]),
            recorded_at=parse_ts(row["recorded_at"]),
            request_id=row["request_id"],
            direction=Direction(row["direction"]) if row["direction"] else None,
            failure_reason=row["failure_reason"],
            requester_name=row["requester_name"],
        )
        for row in rows
    ]


def list_scan_events_for_request(request_id: str) -> List[ScanEvent]:
    """All scan events for one leave request, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            '''
            SELECT id, request_id, staff_id, presented_token, direction, valid,
                   failure_reason, recorded_at
            FROM scan_events
            WHERE request_id = ?
            ORDER BY recorded_at DESC, id DESC
            ''',
            (request_id,)
        ).fetchall()

    return [
        ScanEvent(
            id=row["id"],
            staff_id=row["staff_id"],
            presented_token=row["presented_token"],
            valid=bool(row["valid"]),
            recorded_at=parse_ts(row["recorded_at"]),
            request_id=row["request_id"],
            direction=Direction(row["direction"]) if row["direction"] else None,
            failure_reason=row["failure_reason"],
        )
        for row in rows
    ]


def get_request_count() -> int:
    """Count of all leave requests."""
    with get_db() as conn:
        row = conn.execute("SELECT COUNT(*) FROM leave_requests").fetchone()
    return row[0] if row else 0
