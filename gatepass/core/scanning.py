"""
Gate scan processing.

Staff never choose a direction: a scan is classified as exit or return from the
request's current scan state. Every attempt, accepted or refused, is appended to
the scan event log.
"""

from datetime import datetime
from typing import List, Optional

from util.logging import logger

from . import access, approval, config, dao
from .errors import (
    SCAN_CYCLE_ALREADY_COMPLETE,
    SCAN_MALFORMED_TOKEN,
    SCAN_MESSAGES,
    SCAN_NOT_APPROVED,
    SCAN_OUTSIDE_LEAVE_WINDOW,
    SCAN_STATE_CONFLICT,
    SCAN_UNKNOWN_TOKEN,
    ScanRejected,
    ValidationError,
)
from .schema import (
    ApprovalStatus,
    Direction,
    Identity,
    LeaveRequest,
    ScanEvent,
    ScanOutcome,
    ScanState,
    now_utc,
    to_utc,
)
from .tokens import is_well_formed

# Scan state -> (direction recorded, state after the scan)
TRANSITIONS = {
    ScanState.NOT_SCANNED: (Direction.EXIT, ScanState.EXITED),
    ScanState.EXITED: (Direction.RETURN, ScanState.RETURNED),
}

SUCCESS_MESSAGES = {
    Direction.EXIT: "Requester marked as OUT successfully",
    Direction.RETURN: "Requester marked as IN (returned) successfully",
}


class GateScanner:
    """Classifies presented tokens into exit/return events."""

    def process_scan(self, presented_token: str, identity: Identity,
                     now: Optional[datetime] = None) -> ScanOutcome:
        """Process one scan. Raises ScanRejected after logging a refused attempt."""
        access.authorize_scan(identity)
        now = to_utc(now or now_utc())
        token = presented_token if isinstance(presented_token, str) else ""

        if not is_well_formed(token):
            self._reject(identity, token, now, SCAN_MALFORMED_TOKEN)

        request = dao.find_by_token(token)
        if request is None:
            self._reject(identity, token, now, SCAN_UNKNOWN_TOKEN)

        if request.status != ApprovalStatus.APPROVED or not request.access_token:
            self._reject(identity, token, now, SCAN_NOT_APPROVED, request)

        if not request.within_window(now):
            self._reject(identity, token, now, SCAN_OUTSIDE_LEAVE_WINDOW, request)

        transition = TRANSITIONS.get(request.scan_state)
        if transition is None:
            self._reject(identity, token, now, SCAN_CYCLE_ALREADY_COMPLETE, request)
        direction, new_state = transition

        event_id = dao.record_scan(request, identity.id, token, direction, new_state, now)
        if event_id is None:
            self._reject(identity, token, now, SCAN_STATE_CONFLICT, request)

        logger.log_scan(identity.id, request.id, direction=direction.value)
        requester = dao.get_person(request.requester_id)
        return ScanOutcome(
            direction=direction,
            request_id=request.id,
            requester_id=request.requester_id,
            requester_name=requester.name if requester else None,
            requester_external_id=requester.external_id if requester else None,
            from_instant=request.from_instant,
            to_instant=request.to_instant,
            scanned_at=now,
            message=SUCCESS_MESSAGES[direction],
            event_id=event_id,
        )

    def scan_history(self, identity: Identity, limit: Optional[int] = None) -> List[ScanEvent]:
        """The calling staff member's own scans, newest first."""
        access.authorize_scan(identity)
        if limit is None:
            limit = config.SCAN_HISTORY_LIMIT
        if limit <= 0:
            raise ValidationError("limit must be positive")
        return dao.list_scan_events(identity.id, min(limit, config.SCAN_HISTORY_LIMIT))

    def request_scans(self, identity: Identity, request_id: str) -> List[ScanEvent]:
        """Scan events for one leave request, newest first, for callers who may read it."""
        request = approval.get_request(identity, request_id)
        return dao.list_scan_events_for_request(request.id)

    def _reject(self, identity: Identity, token: str, now: datetime, reason: str,
                request: Optional[LeaveRequest] = None):
        event_id = dao.append_scan_event(
            staff_id=identity.id,
            presented_token=token[:config.SCAN_TOKEN_LOG_LENGTH],
            valid=False,
            recorded_at=now,
            request_id=request.id if request else None,
            failure_reason=reason,
        )
        logger.log_scan(identity.id, request.id if request else None, failure_reason=reason)
        raise ScanRejected(reason, SCAN_MESSAGES[reason], event_id=event_id)


# Global scanner instance
gate_scanner = GateScanner()


def process_scan(presented_token: str, identity: Identity, now: Optional[datetime] = None) -> ScanOutcome:
    """Process a gate scan."""
    return gate_scanner.process_scan(presented_token, identity, now)


def scan_history(identity: Identity, limit: Optional[int] = None) -> List[ScanEvent]:
    """List the caller's recent scans."""
    return gate_scanner.scan_history(identity, limit)


def request_scans(identity: Identity, request_id: str) -> List[ScanEvent]:
    """List the scan events of a leave request visible to the caller."""
    return gate_scanner.request_scans(identity, request_id)
