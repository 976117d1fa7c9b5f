"""
Request and response models for the gate pass API.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, field_validator

from ..core.schema import LeaveRequest, ScanEvent, ScanOutcome


class LeaveCreateRequest(BaseModel):
    from_instant: datetime
    to_instant: datetime
    reason: str
    destination: str
    emergency_contact: str
    attachment: Optional[str] = None

    @field_validator('reason', 'destination', 'emergency_contact')
    @classmethod
    def text_must_not_be_empty(cls, v, info):
        if not v.strip():
            raise ValueError(f'{info.field_name} cannot be empty')
        return v.strip()


class DecisionRequest(BaseModel):
    action: Literal["approve", "reject"]
    comment: Optional[str] = None

    @property
    def decision(self) -> str:
        return "approved" if self.action == "approve" else "rejected"


class StageDecisionResponse(BaseModel):
    status: str
    comment: Optional[str] = None
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    moot: bool = False


class LeaveRequestResponse(BaseModel):
    id: str
    requester_id: str
    from_instant: datetime
    to_instant: datetime
    reason: str
    destination: str
    emergency_contact: str
    attachment: Optional[str] = None
    status: str
    approvals: Dict[str, StageDecisionResponse]
    access_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    scan_state: str
    exited_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, request: LeaveRequest, reveal_token: bool = False) -> "LeaveRequestResponse":
        """Build a response; the token is only revealed to the requester who holds it."""
        return cls(
            id=request.id,
            requester_id=request.requester_id,
            from_instant=request.from_instant,
            to_instant=request.to_instant,
            reason=request.reason,
            destination=request.destination,
            emergency_contact=request.emergency_contact,
            attachment=request.attachment,
            status=request.status.value,
            approvals={
                stage.value: StageDecisionResponse(
                    status=decision.status.value,
                    comment=decision.comment,
                    decided_at=decision.decided_at,
                    decided_by=decision.decided_by,
                    moot=request.is_moot(stage),
                )
                for stage, decision in request.approvals
            },
            access_token=request.access_token if reveal_token else None,
            token_expires_at=request.token_expires_at,
            scan_state=request.scan_state.value,
            exited_at=request.exited_at,
            returned_at=request.returned_at,
            created_at=request.created_at,
            updated_at=request.updated_at,
        )


class LeaveListResponse(BaseModel):
    leave_requests: List[LeaveRequestResponse]


class ScanRequest(BaseModel):
    token: str


class ScanResponse(BaseModel):
    valid: bool
    message: str
    reason: Optional[str] = None
    direction: Optional[str] = None
    request_id: Optional[str] = None
    requester_name: Optional[str] = None
    requester_external_id: Optional[str] = None
    from_instant: Optional[datetime] = None
    to_instant: Optional[datetime] = None
    scanned_at: Optional[datetime] = None
    event_id: Optional[int] = None

    @classmethod
    def from_outcome(cls, outcome: ScanOutcome) -> "ScanResponse":
        return cls(
            valid=True,
            message=outcome.message,
            direction=outcome.direction.value,
            request_id=outcome.request_id,
            requester_name=outcome.requester_name,
            requester_external_id=outcome.requester_external_id,
            from_instant=outcome.from_instant,
            to_instant=outcome.to_instant,
            scanned_at=outcome.scanned_at,
            event_id=outcome.event_id,
        )


class ScanEventResponse(BaseModel):
    id: int
    request_id: Optional[str] = None
    requester_name: Optional[str] = None
    direction: Optional[str] = None
    valid: bool
    failure_reason: Optional[str] = None
    recorded_at: datetime

    @classmethod
    def from_event(cls, event: ScanEvent) -> "ScanEventResponse":
        # The presented token is never echoed back
        return cls(
            id=event.id,
            request_id=event.request_id,
            requester_name=event.requester_name,
            direction=event.direction.value if event.direction else None,
            valid=event.valid,
            failure_reason=event.failure_reason,
            recorded_at=event.recorded_at,
        )


class ScanHistoryResponse(BaseModel):
    scan_events: List[ScanEventResponse]


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    request_count: int


class ErrorResponse(BaseModel):
    error_type: str
    message: str
    timestamp: datetime = None

    def __init__(self, **data):
        super().__init__(timestamp=datetime.now(), **data)
