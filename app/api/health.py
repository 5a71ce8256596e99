"""Health check and version endpoints."""
import os

from fastapi import APIRouter

from app.api.models import HealthResponse, VersionResponse

router = APIRouter(tags=["health"])

SERVICE_VERSION = "0.1.0"


@router.get("/healthz", response_model=HealthResponse)
def healthz() -> HealthResponse:
    return HealthResponse(ok=True)


@router.get("/version", response_model=VersionResponse)
def version() -> VersionResponse:
    # GIT_SHA is injected at deploy time
    return VersionResponse(version=SERVICE_VERSION, git_sha=os.getenv("GIT_SHA", "unknown"))
