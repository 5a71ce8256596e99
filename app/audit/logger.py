"""Audit trail for credential use and issuance.

Three events are recorded: a credential authenticated a request, a credential
was refused, and a new credential was issued. Records go to the "audit"
logger as structured extras and into a bounded in-memory buffer for
inspection. Tokens and key material never appear in a record; refusals carry
only the error code.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from starlette.requests import HTTPConnection

log = logging.getLogger("audit")

REQUEST_ID_HEADERS = ("X-Request-ID", "X-Correlation-ID", "Request-Id")


class AuditAction(str, Enum):
    AUTH_SUCCESS = "auth.success"
    AUTH_FAILURE = "auth.failure"
    CREDENTIAL_ISSUE = "credential.issue"


@dataclass(frozen=True)
class AuditEvent:
    action: str
    principal: str = "anonymous"  # credential subject when known
    resource: Optional[str] = None  # "credential:<jti>"
    outcome: str = "success"  # "success" or "denied"
    details: dict[str, Any] = field(default_factory=dict)
    request_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditLogger:
    """Writes audit events and keeps the most recent ones in memory."""

    MAX_BUFFER_SIZE = 1000

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._recent: deque[AuditEvent] = deque(maxlen=self.MAX_BUFFER_SIZE)

    def record(self, event: AuditEvent) -> None:
        if not self.enabled:
            return
        self._recent.append(event)

        extra = {
            "type": "audit",
            "action": event.action,
            "principal": event.principal,
            "outcome": event.outcome,
            "resource": event.resource,
            "details": event.details,
            "request_id": event.request_id,
        }
        level = logging.WARNING if event.outcome == "denied" else logging.INFO
        log.log(level, f"audit: {event.action} {event.outcome}", extra=extra)

    def auth_success(self, credential, conn: Optional[HTTPConnection] = None) -> None:
        self.record(AuditEvent(
            action=AuditAction.AUTH_SUCCESS.value,
            principal=credential.subject,
            resource=f"credential:{credential.id}",
            details={"scope": credential.scope, "exp": credential.expires_at.isoformat()},
            request_id=request_id_from(conn),
        ))

    def auth_failure(self, code: str, conn: Optional[HTTPConnection] = None) -> None:
        self.record(AuditEvent(
            action=AuditAction.AUTH_FAILURE.value,
            outcome="denied",
            details={"reason": code},
            request_id=request_id_from(conn),
        ))

    def credential_issued(
        self,
        principal: str,
        credential,
        days_valid: int,
        conn: Optional[HTTPConnection] = None,
    ) -> None:
        self.record(AuditEvent(
            action=AuditAction.CREDENTIAL_ISSUE.value,
            principal=principal,
            resource=f"credential:{credential.id}",
            details={
                "subject": credential.subject,
                "scope": credential.scope,
                "days_valid": days_valid,
            },
            request_id=request_id_from(conn),
        ))

    def recent(
        self,
        limit: int = 100,
        action: Optional[str] = None,
        outcome: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Recent events as dicts, newest first.

        Args:
            limit: Max events to return
            action: Keep only actions starting with this prefix (e.g. "auth.")
            outcome: Keep only this outcome (e.g. "denied")
        """
        selected = []
        for event in reversed(self._recent):
            if action and not event.action.startswith(action):
                continue
            if outcome and event.outcome != outcome:
                continue
            selected.append(asdict(event))
            if len(selected) >= limit:
                break
        return selected


def request_id_from(conn: Optional[HTTPConnection]) -> Optional[str]:
    """Correlation id supplied by the caller or a fronting proxy, if any."""
    if conn is None:
        return None
    for header in REQUEST_ID_HEADERS:
        value = conn.headers.get(header)
        if value:
            return value
    return None


_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    global _audit_logger
    if _audit_logger is None:
        from app.core.config import AUDIT_ENABLED

        _audit_logger = AuditLogger(enabled=AUDIT_ENABLED)
    return _audit_logger


def reset_audit_logger() -> None:
    """Drop the process-wide logger (tests)."""
    global _audit_logger
    _audit_logger = None
