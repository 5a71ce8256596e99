"""Audit trail for the attestation gateway."""

from app.audit.logger import (
    AuditAction,
    AuditEvent,
    AuditLogger,
    get_audit_logger,
    request_id_from,
    reset_audit_logger,
)

__all__ = [
    "AuditAction",
    "AuditEvent",
    "AuditLogger",
    "get_audit_logger",
    "request_id_from",
    "reset_audit_logger",
]
