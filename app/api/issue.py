"""Credential issuance endpoint."""
import logging
from datetime import timezone

from fastapi import APIRouter, Depends, Request

from app.api.models import IssueRequest, IssueResponse
from app.audit import get_audit_logger
from app.auth import Credential, CredentialIssuer, require_admin
from app.auth.credential import validity_from_days
from app.auth.dependencies import get_issuer
from app.core.config import DEFAULT_DAYS_VALID, DEFAULT_SCOPE

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["issue"])


def format_expiry(credential: Credential) -> str:
    """RFC3339 UTC timestamp, e.g. 2026-11-17T12:00:00Z."""
    return credential.expires_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@router.post("/issue", response_model=IssueResponse)
async def issue(
    body: IssueRequest,
    request: Request,
    principal: Credential = require_admin,
    issuer: CredentialIssuer = Depends(get_issuer),
) -> IssueResponse:
    """Issue a new scoped credential.

    Requires a credential granting the 'admin' scope. Scope defaults to
    'verify' and validity to 30 days when not given; validity is capped at
    MAX_DAYS_VALID days.
    """
    scope = body.scope or DEFAULT_SCOPE
    days = body.days_valid if body.days_valid > 0 else DEFAULT_DAYS_VALID

    signed = issuer.issue(body.subject, scope, validity_from_days(days))
    credential = signed.credential

    get_audit_logger().credential_issued(principal.subject, credential, days, conn=request)
    log.info(f"Credential {credential.id} issued to {credential.subject!r} by {principal.subject!r}")

    return IssueResponse(
        token=signed.token,
        subject=credential.subject,
        scope=credential.scope,
        expires=format_expiry(credential),
    )
