"""
Error taxonomy for gate pass operations.

Every error carries a stable ``code`` that the HTTP layer returns to clients.
Validation and authorization errors are raised before anything is written;
state conflicts are raised when a precondition on the current stage or scan
state fails, including a conditional write that lost a race.
"""


class GatePassError(Exception):
    """Base class for all domain errors."""
    code = "GatePassError"

    def __init__(self, message: str = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(GatePassError):
    """Malformed or missing input."""
    code = "ValidationError"


class Unauthorized(GatePassError):
    """Caller role, identity or roster does not permit the operation."""
    code = "Unauthorized"

    def __init__(self, message: str = None):
        # The message never names the target, so a denial cannot reveal whether it exists
        super().__init__(message or "Unauthorized")


class NotFound(GatePassError):
    """Unknown request id."""
    code = "NotFound"


class StateConflict(GatePassError):
    """Precondition on the current approval or scan state was violated."""
    code = "StateConflict"


class AlreadyDecided(StateConflict):
    """The request is already rejected or fully approved."""
    code = "AlreadyDecided"


class StagePrerequisiteNotMet(StateConflict):
    """An earlier stage has not been approved yet."""
    code = "StagePrerequisiteNotMet"


class StageAlreadyDecided(StateConflict):
    """The target stage has already left pending."""
    code = "StageAlreadyDecided"


class ScanRejected(GatePassError):
    """A gate scan was refused. ``reason`` is one of the SCAN_* codes below."""
    code = "ScanRejected"

    def __init__(self, reason: str, message: str = None, event_id: int = None):
        super().__init__(message or reason)
        self.reason = reason
        self.event_id = event_id


class StoreError(GatePassError):
    """The record store failed or could not satisfy a write."""
    code = "StoreError"


# Scan rejection reasons
SCAN_MALFORMED_TOKEN = "MalformedToken"
SCAN_UNKNOWN_TOKEN = "UnknownToken"
SCAN_NOT_APPROVED = "NotApproved"
SCAN_OUTSIDE_LEAVE_WINDOW = "OutsideLeaveWindow"
SCAN_CYCLE_ALREADY_COMPLETE = "CycleAlreadyComplete"
SCAN_STATE_CONFLICT = "ScanStateConflict"

SCAN_MESSAGES = {
    SCAN_MALFORMED_TOKEN: "Invalid QR token format",
    SCAN_UNKNOWN_TOKEN: "No leave request found for this QR token",
    SCAN_NOT_APPROVED: "Leave request must be approved before scanning",
    SCAN_OUTSIDE_LEAVE_WINDOW: "QR code is only valid during the approved leave period",
    SCAN_CYCLE_ALREADY_COMPLETE: "Requester has already completed their leave cycle",
    SCAN_STATE_CONFLICT: "Scan state changed while this scan was processed; scan again",
}
