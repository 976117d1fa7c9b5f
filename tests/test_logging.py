"""
Structured logging tests: operation records and redaction of bearer secrets.
"""

from datetime import datetime, timedelta, timezone

import pytest

from gatepass.core import scanning
from gatepass.core.errors import ScanRejected
from util.logging import SENSITIVE_FIELDS, audit_event, logger, sanitize_payload, token_fingerprint

T = datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc)


class TestRedaction:

    def test_sensitive_fields_are_redacted(self):
        payload = {
            "request_id": "req-1",
            "access_token": "aaaa-bbbb-cccc-dddd",
            "nested": {"presented_token": "x-y-z-w", "destination": "Pune"},
            "items": [{"comment": "private"}],
        }
        sanitized = sanitize_payload(payload)

        assert sanitized["request_id"] == "req-1"
        assert sanitized["access_token"] == "[REDACTED]"
        assert sanitized["nested"]["presented_token"] == "[REDACTED]"
        assert sanitized["nested"]["destination"] == "Pune"
        assert sanitized["items"][0]["comment"] == "[REDACTED]"

    def test_reveal_sensitive(self):
        assert sanitize_payload({"token": "t"}, reveal_sensitive=True) == {"token": "t"}

    def test_long_strings_are_truncated(self):
        assert sanitize_payload("x" * 150) == "x" * 100 + "..."

    def test_sensitive_field_list(self):
        assert "access_token" in SENSITIVE_FIELDS
        assert "emergency_contact" in SENSITIVE_FIELDS

    def test_fingerprint_is_stable_and_short(self):
        assert token_fingerprint("a-b-c-d") == token_fingerprint("a-b-c-d")
        assert len(token_fingerprint("a-b-c-d")) == 12
        assert "a-b-c-d" not in token_fingerprint("a-b-c-d")
        assert token_fingerprint("") == ""


class TestOperationRecords:

    def test_audit_event_routes_operation(self, caplog):
        with caplog.at_level("INFO", logger="gatepass"):
            audit_event("approval.decided", {"request_id": "req-1"}, {"access_token": "secret-token"})

        assert "Operation: approval, Status: audit" in caplog.text
        assert "secret-token" not in caplog.text

    def test_token_never_logged_on_issuance(self, caplog, make_request, approve_all):
        with caplog.at_level("INFO", logger="gatepass"):
            final = approve_all(make_request())

        assert "token.minted" in caplog.text
        assert "approval.decision" in caplog.text
        assert final.access_token not in caplog.text
        assert token_fingerprint(final.access_token) in caplog.text

    def test_scans_logged_without_token(self, caplog, make_request, approve_all, people):
        final = approve_all(make_request())
        with caplog.at_level("INFO", logger="gatepass"):
            scanning.process_scan(final.access_token, people.guard, now=T + timedelta(hours=1))
            with pytest.raises(ScanRejected):
                scanning.process_scan(final.access_token, people.guard, now=T + timedelta(days=9))

        assert "Operation: gate.scan, Status: accepted" in caplog.text
        assert "Operation: gate.scan, Status: rejected" in caplog.text
        assert "OutsideLeaveWindow" in caplog.text
        assert final.access_token not in caplog.text

    def test_log_operation_details(self, caplog):
        with caplog.at_level("INFO", logger="gatepass"):
            logger.log_operation("leave.request_created", "pending", {"request_id": "req-7"})
        assert "Operation: leave.request_created, Status: pending, Details: {'request_id': 'req-7'}" in caplog.text

    def test_submission_audit_redacts_contact(self, caplog, make_request):
        with caplog.at_level("INFO", logger="gatepass"):
            request = make_request(emergency_contact="+1 555 0199")

        assert "Operation: leave_submitted, Status: audit" in caplog.text
        assert request.id in caplog.text
        assert "+1 555 0199" not in caplog.text
        assert "'emergency_contact': '[REDACTED]'" in caplog.text
