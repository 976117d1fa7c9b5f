"""
HTTP API for leave requests, approvals and gate scans.

Caller identity is supplied by the upstream identity provider as the
X-User-Id and X-User-Role headers; advisor rosters come from the directory.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core import approval, dao, scanning
from ..core.config import CORS_ORIGINS, VERSION, debug_enabled
from ..core.db import health_check, init_db
from ..core.errors import (
    GatePassError,
    NotFound,
    ScanRejected,
    StateConflict,
    StoreError,
    Unauthorized,
    ValidationError,
)
from ..core.schema import ApprovalStatus, Identity, Role, Stage
from .schemas import (
    DecisionRequest,
    ErrorResponse,
    HealthResponse,
    LeaveCreateRequest,
    LeaveListResponse,
    LeaveRequestResponse,
    ScanEventResponse,
    ScanHistoryResponse,
    ScanRequest,
    ScanResponse,
)

ERROR_STATUS = (
    (ValidationError, 400),
    (Unauthorized, 403),
    (NotFound, 404),
    (StateConflict, 409),
    (StoreError, 500),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


# Initialize the FastAPI application
app = FastAPI(
    title="Gate Pass API",
    version=VERSION,
    description="Leave request approvals and gate access scanning",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_identity(x_user_id: Optional[str] = Header(None),
                 x_user_role: Optional[str] = Header(None)) -> Identity:
    """Build the caller identity from identity provider headers."""
    if not x_user_id or not x_user_id.strip() or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    try:
        role = Role(x_user_role)
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown caller role")

    user_id = x_user_id.strip()
    roster = dao.get_roster(user_id) if role == Role.ADVISOR else frozenset()
    return Identity(id=user_id, role=role, roster=roster)


def _respond(identity: Identity, request) -> LeaveRequestResponse:
    reveal = identity.role == Role.REQUESTER and identity.id == request.requester_id
    return LeaveRequestResponse.from_record(request, reveal_token=reveal)


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint():
    """Check system health."""
    db_health = health_check()
    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        request_count=dao.get_request_count() if db_health else 0,
    )


@app.post("/leave-requests", response_model=LeaveRequestResponse, status_code=201)
def create_leave_request(req: LeaveCreateRequest, identity: Identity = Depends(get_identity)):
    """Submit a leave request for the calling requester."""
    request = approval.create_request(
        identity,
        from_instant=req.from_instant,
        to_instant=req.to_instant,
        reason=req.reason,
        destination=req.destination,
        emergency_contact=req.emergency_contact,
        attachment=req.attachment,
    )
    return _respond(identity, request)


# Define the list endpoint before /leave-requests/{request_id}
@app.get("/leave-requests", response_model=LeaveListResponse)
def list_leave_requests(status: Optional[ApprovalStatus] = None,
                        awaiting_me: bool = False,
                        limit: Optional[int] = Query(None, ge=1),
                        identity: Identity = Depends(get_identity)):
    """List leave requests visible to the caller, newest first."""
    requests = approval.list_visible_requests(identity, status=status, awaiting_me=awaiting_me, limit=limit)
    return LeaveListResponse(leave_requests=[_respond(identity, r) for r in requests])


@app.get("/leave-requests/{request_id}", response_model=LeaveRequestResponse)
def get_leave_request(request_id: str, identity: Identity = Depends(get_identity)):
    """Get one leave request."""
    return _respond(identity, approval.get_request(identity, request_id))


@app.get("/leave-requests/{request_id}/scans", response_model=ScanHistoryResponse)
def list_request_scans(request_id: str, identity: Identity = Depends(get_identity)):
    """Gate scans recorded against one leave request, newest first."""
    events = scanning.request_scans(identity, request_id)
    return ScanHistoryResponse(scan_events=[ScanEventResponse.from_event(e) for e in events])


@app.post("/leave-requests/{request_id}/decisions/{stage}", response_model=LeaveRequestResponse)
def decide_stage(request_id: str, stage: Stage, req: DecisionRequest,
                 identity: Identity = Depends(get_identity)):
    """Approve or reject one approval stage."""
    request = approval.decide(request_id, stage, identity, req.decision, comment=req.comment)
    return _respond(identity, request)


@app.post("/gate/scans", response_model=ScanResponse)
def submit_scan(req: ScanRequest, identity: Identity = Depends(get_identity)):
    """Record a gate scan. Refused scans are reported with valid=false."""
    try:
        outcome = scanning.process_scan(req.token, identity)
    except ScanRejected as e:
        return ScanResponse(valid=False, message=e.message, reason=e.reason, event_id=e.event_id)
    return ScanResponse.from_outcome(outcome)


@app.get("/gate/scans", response_model=ScanHistoryResponse)
def list_scans(limit: Optional[int] = Query(None, ge=1), identity: Identity = Depends(get_identity)):
    """The calling staff member's recent scans, newest first."""
    events = scanning.scan_history(identity, limit=limit)
    return ScanHistoryResponse(scan_events=[ScanEventResponse.from_event(e) for e in events])


@app.exception_handler(GatePassError)
async def gatepass_exception_handler(request, exc: GatePassError):
    """Translate domain errors into HTTP responses."""
    status_code = 500
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code == 500:
        logging.error(f"Store failure: {exc}")
    content = ErrorResponse(error_type=exc.code, message=exc.message)
    return JSONResponse(status_code=status_code, content=content.model_dump(mode="json"))


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions."""
    logging.error(f"Unhandled exception: {exc}")
    content = {"detail": "Internal server error"}
    if debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(
        status_code=500,
        content=content,
    )
