"""Attestation gateway FastAPI application."""
import logging
import time
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from app.api import health, issue, verify
from app.attest.classify import EvidenceFamily
from app.attest.dispatch import EvidenceDispatcher, default_verifiers
from app.attest.exceptions import EvidenceInputError, VerifierError
from app.attest.responder import error_response
from app.attest.verifiers import EvidenceVerifier
from app.audit.logger import request_id_from
from app.auth import (
    AuthenticationError,
    AuthorizationError,
    CredentialIssuer,
    CredentialValidator,
    IssuanceError,
    KeyMaterial,
    KeyMaterialError,
    load_key_material,
)
from app.api.models import ErrorCode
from app.core.config import JWT_SIGNING_KEY_FILE
from app.logging_config import configure_logging

configure_logging()
log = logging.getLogger("attestation-gateway")

INVALID_CREDENTIAL_MESSAGE = "Invalid API key"
INSUFFICIENT_SCOPE_MESSAGE = "Insufficient scope"
INVALID_JSON_MESSAGE = "Invalid JSON body"


def install_key_material(app: FastAPI, key_material: KeyMaterial) -> None:
    """Attach key material and the issuer/validator built from it."""
    app.state.key_material = key_material
    app.state.issuer = CredentialIssuer(key_material)
    app.state.validator = CredentialValidator(key_material)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the signing key once at startup unless one was injected."""
    log.info("Starting attestation gateway...")
    if getattr(app.state, "key_material", None) is None:
        install_key_material(app, load_key_material(JWT_SIGNING_KEY_FILE))
    log.info("Attestation gateway ready")
    yield
    log.info("Attestation gateway stopped")


def create_app(
    key_material: Optional[KeyMaterial] = None,
    verifiers: Optional[Mapping[EvidenceFamily, EvidenceVerifier]] = None,
) -> FastAPI:
    """Build the gateway application.

    Args:
        key_material: Signing key pair. When omitted it is loaded from
            JWT_SIGNING_KEY_FILE at startup.
        verifiers: Verifier registry. Defaults to the external SGX tool and
            the native TDX verifier.
    """
    app = FastAPI(title="Attestation Gateway", version=health.SERVICE_VERSION, lifespan=lifespan)

    app.state.key_material = None
    if key_material is not None:
        install_key_material(app, key_material)
    app.state.dispatcher = EvidenceDispatcher(
        verifiers if verifiers is not None else default_verifiers()
    )

    app.include_router(health.router)
    app.include_router(verify.router)
    app.include_router(issue.router)

    _register_exception_handlers(app)

    @app.middleware("http")
    async def req_log(request: Request, call_next):
        start = time.time()
        route = request.url.path
        remote = request.client.host if request.client else "-"
        resp = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        log.info(f"request_complete status={resp.status_code} duration_ms={duration_ms}",
                 extra={"request_id": request_id_from(request) or "-", "route": route,
                        "remote_addr": remote})
        return resp

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError):
        # Only header-shape problems are described to the client
        message = exc.message if exc.code == ErrorCode.CREDENTIAL_MISSING else INVALID_CREDENTIAL_MESSAGE
        return error_response(401, message, headers={"WWW-Authenticate": "Bearer"})

    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(request: Request, exc: AuthorizationError):
        return error_response(403, INSUFFICIENT_SCOPE_MESSAGE)

    @app.exception_handler(IssuanceError)
    async def issuance_error_handler(request: Request, exc: IssuanceError):
        return error_response(400, exc.message)

    @app.exception_handler(KeyMaterialError)
    async def key_material_error_handler(request: Request, exc: KeyMaterialError):
        log.error(f"Key material error on {request.url.path}: {exc.message}")
        return error_response(500, exc.message)

    @app.exception_handler(EvidenceInputError)
    async def evidence_input_error_handler(request: Request, exc: EvidenceInputError):
        return error_response(400, exc.message)

    @app.exception_handler(VerifierError)
    async def verifier_error_handler(request: Request, exc: VerifierError):
        log.error(f"Verification failed internally on {request.url.path}: {exc.message}")
        return error_response(500, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        log.info(f"Rejected request body on {request.url.path}: "
                 f"{[e.get('type') for e in exc.errors()]}")
        return error_response(400, INVALID_JSON_MESSAGE)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception(f"Unhandled error on {request.url.path}: {exc}")
        return error_response(500, str(exc))


app = create_app()
