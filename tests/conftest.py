"""Shared fixtures: a fresh signing key per test and an app wired with stub verifiers."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.attest.classify import EvidenceFamily
from app.attest.verdict import Verdict
from app.attest.verifiers import EvidenceVerifier
from app.audit import reset_audit_logger
from app.auth import CredentialIssuer, KeyMaterial


class StubVerifier(EvidenceVerifier):
    """Returns a fixed verdict (or raises) and records the bytes it saw."""

    def __init__(self, family: EvidenceFamily, verdict: Verdict = None, error: Exception = None):
        self.family = family
        self.verdict = verdict or Verdict.verified(f"{family.value} ok", family)
        self.error = error
        self.calls: list[bytes] = []

    def verify(self, raw: bytes) -> Verdict:
        self.calls.append(raw)
        if self.error is not None:
            raise self.error
        return self.verdict


@pytest.fixture(autouse=True)
def _fresh_audit_logger():
    reset_audit_logger()
    yield
    reset_audit_logger()


@pytest.fixture
def key_material() -> KeyMaterial:
    return KeyMaterial.generate()


@pytest.fixture
def issuer(key_material) -> CredentialIssuer:
    return CredentialIssuer(key_material)


@pytest.fixture
def make_token(issuer):
    """Issue a token for the given scope with the fixture key."""

    def _make(scope: str = "verify", subject: str = "acme-corp", validity=timedelta(days=1)) -> str:
        return issuer.issue(subject, scope, validity).token

    return _make


@pytest.fixture
def sgx_verifier() -> StubVerifier:
    return StubVerifier(
        EvidenceFamily.SGX,
        Verdict.verified("SGX quote verified via DCAP", EvidenceFamily.SGX),
    )


@pytest.fixture
def tdx_verifier() -> StubVerifier:
    return StubVerifier(
        EvidenceFamily.TDX,
        Verdict.verified("TDX quote verified (signature + certificate chain)", EvidenceFamily.TDX),
    )


@pytest.fixture
def gateway(key_material, sgx_verifier, tdx_verifier):
    from app.main import create_app

    return create_app(
        key_material=key_material,
        verifiers={EvidenceFamily.SGX: sgx_verifier, EvidenceFamily.TDX: tdx_verifier},
    )


@pytest.fixture
def client(gateway) -> TestClient:
    return TestClient(gateway, raise_server_exceptions=False)


@pytest.fixture
def stub_verifier():
    """Factory for StubVerifier instances."""
    return StubVerifier


@pytest.fixture
def make_client(key_material):
    """Client for an app built with the given verifier registry."""
    from app.main import create_app

    def _make(verifiers) -> TestClient:
        app = create_app(key_material=key_material, verifiers=verifiers)
        return TestClient(app, raise_server_exceptions=False)

    return _make
