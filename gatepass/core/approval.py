"""
Leave request creation and the three-stage approval chain.

A request is decided stage by stage in STAGE_ORDER. Each stage leaves pending at
most once; a rejection ends the request, and approval by the final stage mints the
access token presented at the gate.
"""

import sqlite3
import uuid
from datetime import datetime
from typing import List, Optional

from util.logging import audit_event, logger

from . import access, config, dao
from .errors import (
    AlreadyDecided,
    NotFound,
    StageAlreadyDecided,
    StagePrerequisiteNotMet,
    StoreError,
    ValidationError,
)
from .schema import (
    ApprovalStatus,
    Identity,
    LeaveRequest,
    Role,
    Stage,
    StageDecision,
    derive_status,
    now_utc,
    to_utc,
)
from .tokens import mint_token

TOKEN_UNIQUE_VIOLATION = "leave_requests.access_token"


def _required_text(name: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def _optional_text(value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("expected text")
    return value.strip() or None


def _instant(name: str, value) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} is required")
    return to_utc(value)


def check_preconditions(request: LeaveRequest, stage: Stage) -> None:
    """Raise the state conflict that prevents ``stage`` from being decided, if any."""
    if request.status != ApprovalStatus.PENDING:
        raise AlreadyDecided(f"Leave request is already {request.status.value}")

    for earlier in request.approvals.prerequisites(stage):
        if request.approvals[earlier].status != ApprovalStatus.APPROVED:
            raise StagePrerequisiteNotMet(f"{earlier.value} must approve first")

    if not request.approvals[stage].is_pending:
        raise StageAlreadyDecided(f"{stage.value} stage is already decided")


class LeaveWorkflow:
    """Creates leave requests and applies stage decisions through the record store."""

    def create_request(self, identity: Identity, from_instant: datetime, to_instant: datetime,
                       reason: str, destination: str, emergency_contact: str,
                       attachment: Optional[str] = None,
                       now: Optional[datetime] = None) -> LeaveRequest:
        """Create a new leave request for the calling requester."""
        access.authorize_create(identity, identity.id)

        now = to_utc(now or now_utc())
        from_instant = _instant("from_instant", from_instant)
        to_instant = _instant("to_instant", to_instant)

        if to_instant <= from_instant:
            raise ValidationError("to_instant must be after from_instant")
        if from_instant < now:
            raise ValidationError("from_instant cannot be in the past")

        request = LeaveRequest(
            id=uuid.uuid4().hex,
            requester_id=identity.id,
            from_instant=from_instant,
            to_instant=to_instant,
            reason=_required_text("reason", reason),
            destination=_required_text("destination", destination),
            emergency_contact=_required_text("emergency_contact", emergency_contact),
            attachment=_optional_text(attachment),
            created_at=now,
            updated_at=now,
        )
        dao.insert_leave_request(request)

        logger.log_request_created(request.id, request.requester_id)
        audit_event("leave.submitted", {"request_id": request.id}, payload=request.to_dict())
        return request

    def get_request(self, identity: Identity, request_id: str) -> LeaveRequest:
        """Read one request the caller is allowed to see."""
        if identity.role == Role.GATE_STAFF:
            raise access.deny(identity, "read_request")

        return access.authorize_read(identity, dao.get_leave_request(request_id))

    def list_visible_requests(self, identity: Identity, status: Optional[ApprovalStatus] = None,
                              awaiting_me: bool = False,
                              limit: Optional[int] = None) -> List[LeaveRequest]:
        """Requests visible to the caller, newest created first.

        ``awaiting_me`` narrows an approver's list to live requests still pending
        at the caller's own stage.
        """
        scope = access.list_scope(identity)

        if limit is None:
            limit = config.LIST_DEFAULT_LIMIT
        if limit <= 0:
            raise ValidationError("limit must be positive")

        pending_stage = None
        if awaiting_me:
            pending_stage = _stage_for_role(identity.role)
            if pending_stage is None:
                raise ValidationError("awaiting_me applies to approvers only")

        return dao.list_leave_requests(
            requester_ids=scope.requester_ids,
            approved_stage=scope.approved_stage,
            pending_stage=pending_stage,
            status=ApprovalStatus(status) if status else None,
            limit=min(limit, config.LIST_DEFAULT_LIMIT),
        )

    def decide(self, request_id: str, stage: Stage, identity: Identity, decision: ApprovalStatus,
               comment: Optional[str] = None, now: Optional[datetime] = None) -> LeaveRequest:
        """Approve or reject one stage of a leave request."""
        try:
            stage = Stage(stage)
            decision = ApprovalStatus(decision)
        except ValueError:
            raise ValidationError("Invalid stage or decision")
        if decision == ApprovalStatus.PENDING:
            raise ValidationError("decision must be approved or rejected")

        access.authorize_decide_role(identity, stage)
        request = dao.get_leave_request(request_id)
        access.authorize_decide(identity, stage, request)
        if request is None:
            raise NotFound("Leave request not found")

        check_preconditions(request, stage)

        now = to_utc(now or now_utc())
        chain = request.approvals.with_decision(stage, StageDecision(
            status=decision,
            comment=_optional_text(comment),
            decided_at=now,
            decided_by=identity.id,
        ))
        overall = derive_status(chain)

        if overall == ApprovalStatus.APPROVED:
            written = self._approve_final(request, stage, chain[stage], now)
        else:
            written = dao.record_decision(request.id, stage, chain[stage], overall, now)

        if not written:
            # Lost the conditional write; report what the caller would see now
            current = dao.get_leave_request(request.id)
            if current is not None:
                check_preconditions(current, stage)
            raise StageAlreadyDecided(f"{stage.value} stage is already decided")

        logger.log_approval_decision(request.id, stage.value, decision.value, identity.id, overall.value)
        return dao.get_leave_request(request.id)

    def _approve_final(self, request: LeaveRequest, stage: Stage, decision: StageDecision,
                       now: datetime) -> bool:
        """Write the final approval together with a freshly minted token.

        The store enforces token uniqueness; a collision re-mints.
        """
        for attempt in range(1, config.TOKEN_MINT_ATTEMPTS + 1):
            token = mint_token(request.requester_id, request.id)
            try:
                written = dao.record_decision(
                    request.id, stage, decision, ApprovalStatus.APPROVED, now,
                    access_token=token, token_expires_at=request.to_instant,
                )
            except sqlite3.IntegrityError as e:
                if TOKEN_UNIQUE_VIOLATION not in str(e):
                    raise
                logger.warning(f"Access token collision for request {request.id} on attempt {attempt}")
                continue
            if written:
                logger.log_token_minted(request.id, token, attempt)
            return written

        raise StoreError(f"Could not mint a unique access token after {config.TOKEN_MINT_ATTEMPTS} attempts")


def _stage_for_role(role: Role) -> Optional[Stage]:
    for stage in Stage:
        if stage.value == Role(role).value:
            return stage
    return None


# Global workflow instance
leave_workflow = LeaveWorkflow()


def create_request(identity: Identity, from_instant: datetime, to_instant: datetime, reason: str,
                   destination: str, emergency_contact: str, attachment: Optional[str] = None,
                   now: Optional[datetime] = None) -> LeaveRequest:
    """Create a new leave request."""
    return leave_workflow.create_request(identity, from_instant, to_instant, reason, destination,
                                         emergency_contact, attachment, now)


def decide(request_id: str, stage: Stage, identity: Identity, decision: ApprovalStatus,
           comment: Optional[str] = None, now: Optional[datetime] = None) -> LeaveRequest:
    """Decide one approval stage."""
    return leave_workflow.decide(request_id, stage, identity, decision, comment, now)


def get_request(identity: Identity, request_id: str) -> LeaveRequest:
    """Get a leave request visible to the caller."""
    return leave_workflow.get_request(identity, request_id)


def list_visible_requests(identity: Identity, status: Optional[ApprovalStatus] = None,
                          awaiting_me: bool = False, limit: Optional[int] = None) -> List[LeaveRequest]:
    """List leave requests visible to the caller."""
    return leave_workflow.list_visible_requests(identity, status, awaiting_me, limit)
