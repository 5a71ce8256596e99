"""
Verdict responder.

Every outcome of an API call, verdict or error, leaves the gateway in the same
shape: {"success", "status"?, "message"?, "error"?} with unset fields omitted.

    verified        200  success=true   status=OK
    rejected        200  success=false  status=VERIFICATION_FAILED
    malformed       400  success=false
    bad input       400  success=false
    unauthenticated 401  success=false
    unauthorized    403  success=false
    internal error  500  success=false  generic message only
"""

from typing import Optional

from fastapi.responses import JSONResponse

from app.api.models import VerifyResponse
from app.attest.verdict import Verdict, VerdictStatus

STATUS_OK = "OK"
STATUS_VERIFICATION_FAILED = "VERIFICATION_FAILED"
INTERNAL_ERROR_MESSAGE = "Internal server error"


def verdict_body(verdict: Verdict) -> tuple[int, VerifyResponse]:
    """Map a verdict to (HTTP status, response body)."""
    if verdict.status == VerdictStatus.VERIFIED:
        return 200, VerifyResponse(success=True, status=STATUS_OK, message=verdict.message)
    if verdict.status == VerdictStatus.REJECTED:
        return 200, VerifyResponse(
            success=False, status=STATUS_VERIFICATION_FAILED, error=verdict.message
        )
    return 400, VerifyResponse(success=False, error=verdict.message)


def verdict_response(verdict: Verdict) -> JSONResponse:
    status_code, body = verdict_body(verdict)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def error_response(
    status_code: int,
    message: str,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Normalized error body. 5xx responses never carry internal detail."""
    if status_code >= 500:
        message = INTERNAL_ERROR_MESSAGE
    body = VerifyResponse(success=False, error=message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )
