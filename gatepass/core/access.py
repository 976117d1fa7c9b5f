"""
Access control: which role may do what, and which requests a caller can see.

Every check either returns normally or raises Unauthorized. Denials are logged
with the actor and operation only, never the target request.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from util.logging import logger

from .errors import Unauthorized
from .schema import STAGE_ROLES, ApprovalStatus, Identity, LeaveRequest, Role, Stage


@dataclass(frozen=True)
class ListScope:
    """Store-level filter describing the requests a caller may list."""
    requester_ids: Optional[FrozenSet[str]] = None
    approved_stage: Optional[Stage] = None


def deny(identity: Identity, operation: str) -> Unauthorized:
    logger.log_access_denied(identity.id, Role(identity.role).value, operation)
    return Unauthorized()


def authorize_create(identity: Identity, requester_id: str) -> None:
    """Requesters create leave requests for themselves only."""
    if identity.role != Role.REQUESTER or identity.id != requester_id:
        raise deny(identity, "create_request")


def can_read(identity: Identity, request: LeaveRequest) -> bool:
    role = identity.role
    if role == Role.REQUESTER:
        return request.requester_id == identity.id
    if role == Role.ADVISOR:
        return request.requester_id in identity.roster
    if role == Role.DEPARTMENT_HEAD:
        return request.approvals[Stage.ADVISOR].status == ApprovalStatus.APPROVED
    if role == Role.WARDEN:
        return request.approvals[Stage.DEPARTMENT_HEAD].status == ApprovalStatus.APPROVED
    return False


def authorize_read(identity: Identity, request: Optional[LeaveRequest]) -> LeaveRequest:
    """Return the request if the caller may see it.

    A missing request is indistinguishable from a forbidden one.
    """
    if request is None or not can_read(identity, request):
        raise deny(identity, "read_request")
    return request


def authorize_decide_role(identity: Identity, stage: Stage) -> None:
    """Only the stage's designated role may decide it."""
    if identity.role != STAGE_ROLES[Stage(stage)]:
        raise deny(identity, f"decide_{Stage(stage).value}")


def authorize_decide(identity: Identity, stage: Stage, request: Optional[LeaveRequest]) -> None:
    """Role check plus roster scoping for advisors.

    Stage ordering is not checked here; the approval chain reports it as
    StagePrerequisiteNotMet.
    """
    authorize_decide_role(identity, stage)
    if identity.role == Role.ADVISOR:
        if request is None or request.requester_id not in identity.roster:
            raise deny(identity, "decide_advisor")


def authorize_scan(identity: Identity) -> None:
    if identity.role != Role.GATE_STAFF:
        raise deny(identity, "process_scan")


def list_scope(identity: Identity) -> ListScope:
    """The subset of requests a caller may list."""
    role = identity.role
    if role == Role.REQUESTER:
        return ListScope(requester_ids=frozenset({identity.id}))
    if role == Role.ADVISOR:
        return ListScope(requester_ids=frozenset(identity.roster))
    if role == Role.DEPARTMENT_HEAD:
        return ListScope(approved_stage=Stage.ADVISOR)
    if role == Role.WARDEN:
        return ListScope(approved_stage=Stage.DEPARTMENT_HEAD)
    raise deny(identity, "list_requests")
