"""Evidence verification endpoint."""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.api.models import VerifyRequest, VerifyResponse
from app.attest.dispatch import EvidenceDispatcher, decode_quote
from app.attest.responder import verdict_response
from app.auth import Credential, require_verify

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["verify"])


@router.post("/verify", response_model=VerifyResponse)
async def verify(
    body: VerifyRequest,
    request: Request,
    credential: Credential = require_verify,
) -> JSONResponse:
    """Verify a base64-encoded attestation quote.

    Requires a credential granting the 'verify' scope. A quote that was
    evaluated and failed is a 200 with success=false; a quote that could not
    be parsed is a 400.
    """
    raw = decode_quote(body.quote)

    dispatcher: EvidenceDispatcher = request.app.state.dispatcher
    # Verifiers block (subprocess, ECDSA); keep them off the event loop
    verdict = await run_in_threadpool(dispatcher.verify, raw)

    log.info(
        f"Quote verification for {credential.subject!r}: "
        f"family={verdict.family.value} status={verdict.status.value}"
    )
    return verdict_response(verdict)
