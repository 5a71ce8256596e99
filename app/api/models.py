"""
Attestation gateway API models.

Request/response bodies for the HTTP surface and the error code registry
shared by the credential and evidence layers.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


# =============================================================================
# Error codes
# =============================================================================

class ErrorCode:
    """Error code registry."""
    # Credential layer (authentication)
    CREDENTIAL_MISSING = "CREDENTIAL_MISSING"
    CREDENTIAL_MALFORMED = "CREDENTIAL_MALFORMED"
    CREDENTIAL_FORBIDDEN_ALG = "CREDENTIAL_FORBIDDEN_ALG"
    CREDENTIAL_SIG_INVALID = "CREDENTIAL_SIG_INVALID"
    CREDENTIAL_EXPIRED = "CREDENTIAL_EXPIRED"

    # Credential layer (authorization)
    CREDENTIAL_SCOPE_INSUFFICIENT = "CREDENTIAL_SCOPE_INSUFFICIENT"

    # Issuance
    ISSUANCE_INVALID = "ISSUANCE_INVALID"
    KEY_MATERIAL_INVALID = "KEY_MATERIAL_INVALID"

    # Request layer
    INVALID_JSON = "INVALID_JSON"
    QUOTE_MISSING = "QUOTE_MISSING"
    QUOTE_ENCODING_INVALID = "QUOTE_ENCODING_INVALID"

    # Verifier layer
    VERIFIER_FAILED = "VERIFIER_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Evidence verification
# =============================================================================

class VerifyRequest(BaseModel):
    """Request body for POST /api/verify."""
    quote: str = ""  # base64-encoded raw quote bytes


class VerifyResponse(BaseModel):
    """Normalized response for the verify endpoint and every error path."""
    success: bool
    status: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# Credential issuance
# =============================================================================

class IssueRequest(BaseModel):
    """Request body for POST /api/issue."""
    subject: str = ""
    scope: str = ""
    days_valid: int = Field(
        default=0,
        validation_alias=AliasChoices("days_valid", "daysValid"),
    )


class IssueResponse(BaseModel):
    """Response body for POST /api/issue."""
    token: str
    subject: str
    scope: str
    expires: str  # RFC3339


# =============================================================================
# Operational
# =============================================================================

class HealthResponse(BaseModel):
    ok: bool


class VersionResponse(BaseModel):
    version: str
    git_sha: str
