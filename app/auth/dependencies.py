"""Scope-gated request authentication.

Usage:
    @router.post("/verify")
    async def verify(
        body: VerifyRequest,
        credential: Credential = require_verify,
    ):
        ...

The dependency runs before the handler. Any failure raises a CredentialError,
which the exception handlers in app.main render as 401 or 403 without the
handler ever being invoked.
"""

import logging

from fastapi import Depends, Request

from app.audit.logger import get_audit_logger
from app.auth.credential import CredentialIssuer, Credential
from app.auth.exceptions import AuthenticationError, AuthorizationError, KeyMaterialError
from app.auth.validator import CredentialValidator
from app.core.config import ADMIN_SCOPE, VERIFY_SCOPE

log = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def get_validator(request: Request) -> CredentialValidator:
    validator = getattr(request.app.state, "validator", None)
    if validator is None:
        raise KeyMaterialError("Signing key material is not loaded")
    return validator


def get_issuer(request: Request) -> CredentialIssuer:
    issuer = getattr(request.app.state, "issuer", None)
    if issuer is None:
        raise KeyMaterialError("Signing key material is not loaded")
    return issuer


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an Authorization header value.

    Raises:
        AuthenticationError: Header missing or not using the Bearer scheme
    """
    if not authorization:
        raise AuthenticationError.missing("Missing Authorization header")
    if not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError.missing("Authorization must use Bearer scheme")
    return authorization[len(BEARER_PREFIX):]


def require_scope(required_scope: str):
    """Create a FastAPI dependency that requires a credential granting a scope.

    Args:
        required_scope: Scope the presented credential must grant

    Returns:
        A FastAPI Depends() that yields the validated Credential
    """

    async def dependency(request: Request) -> Credential:
        audit = get_audit_logger()
        try:
            token = extract_bearer_token(request.headers.get("Authorization"))
            credential = get_validator(request).validate(token, required_scope)
        except AuthorizationError as e:
            log.warning(f"Access denied: {e.message}")
            audit.auth_failure(e.code, conn=request)
            raise
        except AuthenticationError as e:
            log.warning(f"Authentication failed: {e.code}: {e.message}")
            audit.auth_failure(e.code, conn=request)
            raise

        log.info(
            f"Authenticated request from {credential.subject!r} "
            f"(scope={credential.scope}, exp={credential.expires_at.isoformat()})"
        )
        return credential

    return Depends(dependency)


# Pre-built dependencies for the gateway endpoints
require_verify = require_scope(VERIFY_SCOPE)
require_admin = require_scope(ADMIN_SCOPE)
