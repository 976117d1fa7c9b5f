"""
Typed records for leave requests, the approval chain and gate scans.
"""

from dataclasses import dataclass, field, replace, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Iterator, Optional, Tuple


class Role(str, Enum):
    REQUESTER = "requester"
    ADVISOR = "advisor"
    DEPARTMENT_HEAD = "department_head"
    WARDEN = "warden"
    GATE_STAFF = "gate_staff"


class Stage(str, Enum):
    ADVISOR = "advisor"
    DEPARTMENT_HEAD = "department_head"
    WARDEN = "warden"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ScanState(str, Enum):
    NOT_SCANNED = "not_scanned"
    EXITED = "exited"
    RETURNED = "returned"


class Direction(str, Enum):
    EXIT = "exit"
    RETURN = "return"


# Fixed decision order; the chain never grows or shrinks
STAGE_ORDER: Tuple[Stage, Stage, Stage] = (Stage.ADVISOR, Stage.DEPARTMENT_HEAD, Stage.WARDEN)

STAGE_ROLES: Dict[Stage, Role] = {
    Stage.ADVISOR: Role.ADVISOR,
    Stage.DEPARTMENT_HEAD: Role.DEPARTMENT_HEAD,
    Stage.WARDEN: Role.WARDEN,
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class StageDecision:
    status: ApprovalStatus = ApprovalStatus.PENDING
    comment: Optional[str] = None
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING


@dataclass(frozen=True)
class ApprovalChain:
    """The three approval stages, always in STAGE_ORDER."""
    advisor: StageDecision = field(default_factory=StageDecision)
    department_head: StageDecision = field(default_factory=StageDecision)
    warden: StageDecision = field(default_factory=StageDecision)

    def __getitem__(self, stage: Stage) -> StageDecision:
        return getattr(self, Stage(stage).value)

    def __iter__(self) -> Iterator[Tuple[Stage, StageDecision]]:
        for stage in STAGE_ORDER:
            yield stage, self[stage]

    def with_decision(self, stage: Stage, decision: StageDecision) -> "ApprovalChain":
        return replace(self, **{Stage(stage).value: decision})

    def prerequisites(self, stage: Stage) -> Tuple[Stage, ...]:
        """Stages that must be approved before ``stage`` may be decided."""
        return STAGE_ORDER[:STAGE_ORDER.index(Stage(stage))]


def derive_status(chain: ApprovalChain) -> ApprovalStatus:
    """Overall status as a pure function of the stage statuses."""
    statuses = [decision.status for _, decision in chain]
    if ApprovalStatus.REJECTED in statuses:
        return ApprovalStatus.REJECTED
    if all(s == ApprovalStatus.APPROVED for s in statuses):
        return ApprovalStatus.APPROVED
    return ApprovalStatus.PENDING


@dataclass
class LeaveRequest:
    id: str
    requester_id: str
    from_instant: datetime
    to_instant: datetime
    reason: str
    destination: str
    emergency_contact: str
    approvals: ApprovalChain = field(default_factory=ApprovalChain)
    attachment: Optional[str] = None
    access_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    scan_state: ScanState = ScanState.NOT_SCANNED
    exited_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def status(self) -> ApprovalStatus:
        return derive_status(self.approvals)

    def is_moot(self, stage: Stage) -> bool:
        """A stage left pending behind a rejection is never evaluated."""
        return self.approvals[stage].is_pending and self.status == ApprovalStatus.REJECTED

    def within_window(self, instant: datetime) -> bool:
        instant = to_utc(instant)
        if not (self.from_instant <= instant <= self.to_instant):
            return False
        return self.token_expires_at is None or instant <= self.token_expires_at

    def to_dict(self) -> Dict:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["status"] = self.status.value
        for key, value in list(data.items()):
            if isinstance(value, datetime):
                data[key] = value.isoformat()
        data["approvals"] = {
            stage.value: {
                "status": decision.status.value,
                "comment": decision.comment,
                "decided_at": decision.decided_at.isoformat() if decision.decided_at else None,
                "decided_by": decision.decided_by,
                "moot": self.is_moot(stage),
            }
            for stage, decision in self.approvals
        }
        data["scan_state"] = self.scan_state.value
        return data


@dataclass(frozen=True)
class ScanEvent:
    id: int
    staff_id: str
    presented_token: str
    valid: bool
    recorded_at: datetime
    request_id: Optional[str] = None
    direction: Optional[Direction] = None
    failure_reason: Optional[str] = None
    requester_name: Optional[str] = None


@dataclass(frozen=True)
class ScanOutcome:
    direction: Direction
    request_id: str
    requester_id: str
    requester_name: Optional[str]
    requester_external_id: Optional[str]
    from_instant: datetime
    to_instant: datetime
    scanned_at: datetime
    message: str
    event_id: Optional[int] = None


@dataclass(frozen=True)
class Person:
    id: str
    name: str
    role: Role
    external_id: Optional[str] = None


@dataclass(frozen=True)
class Identity:
    """Caller identity as supplied by the identity provider."""
    id: str
    role: Role
    roster: FrozenSet[str] = frozenset()
