"""
Structured logging for gate pass operations.
Approval decisions, token issuance and gate scans are logged as operation records.
"""

import hashlib
import logging
from typing import Any, Dict, List

# Fields whose values are bearer secrets or free text that should not reach log sinks
SENSITIVE_FIELDS = ['access_token', 'token', 'presented_token', 'emergency_contact', 'comment']


class StructuredLogger:
    """Structured logger for leave requests, approvals and gate scans."""

    def __init__(self, name: str = "gatepass"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_request_created(self, request_id: str, requester_id: str):
        """Log leave request creation."""
        self.log_operation("leave.request_created", "pending", {
            "request_id": request_id,
            "requester_id": requester_id
        })

    def log_approval_decision(self, request_id: str, stage: str, decision: str, approver: str,
                              overall_status: str):
        """Log a stage decision and the overall status it produced."""
        log_details = {
            "request_id": request_id,
            "stage": stage,
            "decision": decision,
            "approver": approver,
            "overall_status": overall_status
        }
        self.log_operation("approval.decision", decision, log_details)

    def log_token_minted(self, request_id: str, token: str, attempt: int = 1):
        """Log token issuance. Only a fingerprint of the token is written."""
        self.log_operation("token.minted", "success", {
            "request_id": request_id,
            "fingerprint": token_fingerprint(token),
            "attempt": attempt
        })

    def log_scan(self, staff_id: str, request_id: str = None, direction: str = None,
                 failure_reason: str = None):
        """Log a gate scan attempt."""
        log_details = {"staff_id": staff_id, "request_id": request_id}
        if direction:
            log_details["direction"] = direction
        if failure_reason:
            log_details["failure_reason"] = failure_reason
        status = "rejected" if failure_reason else "accepted"
        self.log_operation("gate.scan", status, log_details)

    def log_access_denied(self, actor_id: str, role: str, operation: str):
        """Log an authorization denial. The target is deliberately omitted."""
        self.log_operation("access.denied", "unauthorized", {
            "actor_id": actor_id,
            "role": role,
            "operation": operation
        })

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


def token_fingerprint(token: str) -> str:
    """Short, non-reversible identifier for correlating a token across log lines."""
    if not token:
        return ""
    return hashlib.sha256(token.encode()).hexdigest()[:12]


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None,
                sensitive_fields: List[str] = None):
    """General audit event logging with redaction of sensitive fields."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    log_details = identifiers.copy() if identifiers else {}

    if payload:
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    if event_type.startswith("approval"):
        operation = "approval"
    elif event_type.startswith("scan") or event_type.startswith("gate"):
        operation = "gate"
    else:
        operation = event_type.replace(".", "_")

    logger.log_operation(operation, "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
