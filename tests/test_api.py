"""
End-to-end tests for the HTTP surface.

Verifiers are mostly stubs (see conftest.py) so these tests exercise gating,
routing and response normalization. The TDX parser runs for real where
an undecodable quote must surface as a client error.
"""

import base64
import struct
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.attest.classify import EvidenceFamily
from app.attest.exceptions import VerifierError
from app.attest.verdict import Verdict
from app.attest.verifiers import TdxQuoteVerifier
from app.audit import get_audit_logger
from app.auth import CredentialValidator
from app.core.config import MAX_DAYS_VALID


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def quote_b64(version: int, length: int = 64) -> str:
    raw = struct.pack("<H", version) + b"\x42" * (length - 2)
    return base64.b64encode(raw).decode("ascii")


# =============================================================================
# Operational endpoints
# =============================================================================

class TestOperational:
    def test_healthz(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_version(self, client, monkeypatch):
        monkeypatch.setenv("GIT_SHA", "abc123")
        resp = client.get("/version")
        assert resp.status_code == 200
        assert resp.json()["git_sha"] == "abc123"
        assert resp.json()["version"]


# =============================================================================
# Authentication and authorization gating
# =============================================================================

class TestGating:
    def test_missing_header_is_401(self, client, sgx_verifier):
        resp = client.post("/api/verify", json={"quote": quote_b64(3)})
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Missing Authorization header"}
        assert resp.headers["www-authenticate"] == "Bearer"
        assert sgx_verifier.calls == []

    def test_non_bearer_scheme_is_401(self, client):
        resp = client.post(
            "/api/verify",
            json={"quote": quote_b64(3)},
            headers={"Authorization": "Basic dXNlcjpwYXNz"},
        )
        assert resp.status_code == 401
        assert resp.json()["error"] == "Authorization must use Bearer scheme"

    def test_garbage_token_is_401_with_uniform_message(self, client, sgx_verifier):
        resp = client.post("/api/verify", json={"quote": quote_b64(3)}, headers=bearer("abc"))
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Invalid API key"}
        assert sgx_verifier.calls == []

    def test_expired_token_is_401(self, client, issuer):
        past = datetime.now(timezone.utc) - timedelta(days=2)
        token = issuer.issue("acme-corp", "verify", timedelta(days=1), now=past).token
        resp = client.post("/api/verify", json={"quote": quote_b64(3)}, headers=bearer(token))
        assert resp.status_code == 401
        assert resp.json()["error"] == "Invalid API key"

    def test_verify_scope_cannot_issue(self, client, make_token):
        resp = client.post(
            "/api/issue",
            json={"subject": "bob", "scope": "admin"},
            headers=bearer(make_token("verify")),
        )
        assert resp.status_code == 403
        assert resp.json() == {"success": False, "error": "Insufficient scope"}

    def test_admin_only_cannot_verify(self, client, make_token, sgx_verifier):
        resp = client.post(
            "/api/verify",
            json={"quote": quote_b64(3)},
            headers=bearer(make_token("admin")),
        )
        assert resp.status_code == 403
        assert sgx_verifier.calls == []

    def test_auth_failure_is_audited(self, client):
        client.post("/api/verify", json={"quote": quote_b64(3)}, headers=bearer("a.b.c"))
        events = get_audit_logger().recent(action="auth.failure")
        assert len(events) == 1
        assert events[0]["outcome"] == "denied"
        assert events[0]["details"]["reason"].startswith("CREDENTIAL_")


# =============================================================================
# Verification
# =============================================================================

class TestVerify:
    def test_sgx_quote_verified(self, client, make_token, sgx_verifier):
        resp = client.post(
            "/api/verify", json={"quote": quote_b64(3)}, headers=bearer(make_token("verify"))
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "status": "OK",
            "message": "SGX quote verified via DCAP",
        }
        assert len(sgx_verifier.calls) == 1
        assert sgx_verifier.calls[0][:2] == b"\x03\x00"

    def test_tdx_quote_routed_to_tdx(self, client, make_token, sgx_verifier, tdx_verifier):
        resp = client.post(
            "/api/verify", json={"quote": quote_b64(4)}, headers=bearer(make_token("verify,admin"))
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "TDX quote verified (signature + certificate chain)"
        assert len(tdx_verifier.calls) == 1
        assert sgx_verifier.calls == []

    def test_unknown_version_is_400(self, client, make_token, sgx_verifier, tdx_verifier):
        resp = client.post(
            "/api/verify", json={"quote": quote_b64(9)}, headers=bearer(make_token())
        )
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": "Unsupported quote format (version 9)",
        }
        assert sgx_verifier.calls == [] and tdx_verifier.calls == []

    def test_missing_quote_is_400(self, client, make_token):
        resp = client.post("/api/verify", json={}, headers=bearer(make_token()))
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Missing 'quote' field"}

    def test_invalid_base64_is_400(self, client, make_token):
        resp = client.post(
            "/api/verify", json={"quote": "@@not-base64@@"}, headers=bearer(make_token())
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid base64 in 'quote' field"

    def test_invalid_json_is_400(self, client, make_token):
        resp = client.post(
            "/api/verify",
            content=b"{not json",
            headers={**bearer(make_token()), "Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Invalid JSON body"}

    def test_rejected_verdict_is_200_failure(self, make_client, make_token, stub_verifier):
        client = make_client({
            EvidenceFamily.SGX: stub_verifier(
                EvidenceFamily.SGX,
                Verdict.rejected("SGX verification failed: bad TCB", EvidenceFamily.SGX),
            ),
        })
        resp = client.post("/api/verify", json={"quote": quote_b64(3)}, headers=bearer(make_token()))
        assert resp.status_code == 200
        assert resp.json() == {
            "success": False,
            "status": "VERIFICATION_FAILED",
            "error": "SGX verification failed: bad TCB",
        }

    def test_verifier_failure_is_generic_500(self, make_client, make_token, stub_verifier):
        client = make_client({
            EvidenceFamily.SGX: stub_verifier(
                EvidenceFamily.SGX,
                error=VerifierError("SGX verification timed out after 30.0s"),
            ),
        })
        resp = client.post("/api/verify", json={"quote": quote_b64(3)}, headers=bearer(make_token()))
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Internal server error"}

    def test_unexpected_exception_is_generic_500(self, make_client, make_token, stub_verifier):
        client = make_client({
            EvidenceFamily.TDX: stub_verifier(EvidenceFamily.TDX, error=RuntimeError("/secret/path")),
        })
        resp = client.post("/api/verify", json={"quote": quote_b64(4)}, headers=bearer(make_token()))
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Internal server error"}

    @pytest.mark.parametrize("registry", ["default", "tdx_only"])
    def test_undecodable_tdx_quote_is_400(self, make_client, make_token, registry):
        verifiers = None if registry == "default" else {EvidenceFamily.TDX: TdxQuoteVerifier()}
        client = make_client(verifiers)
        quote = base64.b64encode(b"\x04\x00\x00\x00").decode("ascii")

        resp = client.post("/api/verify", json={"quote": quote}, headers=bearer(make_token()))
        assert resp.status_code == 400
        data = resp.json()
        assert data["success"] is False
        assert data["error"].startswith("Failed to parse TDX quote")
        assert "status" not in data

    def test_unregistered_family_is_500(self, make_client, make_token, stub_verifier):
        client = make_client({EvidenceFamily.SGX: stub_verifier(EvidenceFamily.SGX)})
        resp = client.post("/api/verify", json={"quote": quote_b64(4)}, headers=bearer(make_token()))
        assert resp.status_code == 500


# =============================================================================
# Issuance
# =============================================================================

class TestIssue:
    def test_admin_issues_token_that_verifies(self, client, make_token, key_material, sgx_verifier):
        resp = client.post(
            "/api/issue",
            json={"subject": "acme-corp", "scope": "verify", "days_valid": 7},
            headers=bearer(make_token("admin")),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["subject"] == "acme-corp"
        assert data["scope"] == "verify"

        cred = CredentialValidator(key_material).validate(data["token"], "verify")
        assert cred.subject == "acme-corp"
        expires = datetime.strptime(data["expires"], "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
        assert expires == cred.expires_at

        verify = client.post(
            "/api/verify", json={"quote": quote_b64(3)}, headers=bearer(data["token"])
        )
        assert verify.status_code == 200
        assert verify.json()["success"] is True
        assert len(sgx_verifier.calls) == 1

    def test_defaults_scope_and_validity(self, client, make_token):
        before = datetime.now(timezone.utc)
        resp = client.post(
            "/api/issue", json={"subject": "acme-corp"}, headers=bearer(make_token("admin"))
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["scope"] == "verify"

        expires = datetime.strptime(data["expires"], "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
        assert timedelta(days=29, hours=23) < expires - before <= timedelta(days=30, seconds=2)

    @pytest.mark.parametrize("days", [0, -5])
    def test_non_positive_days_use_default(self, client, make_token, days):
        resp = client.post(
            "/api/issue",
            json={"subject": "acme-corp", "days_valid": days},
            headers=bearer(make_token("admin")),
        )
        assert resp.status_code == 200

    def test_camel_case_days_accepted(self, client, make_token, key_material):
        resp = client.post(
            "/api/issue",
            json={"subject": "acme-corp", "daysValid": 2},
            headers=bearer(make_token("admin")),
        )
        assert resp.status_code == 200
        cred = CredentialValidator(key_material).validate(resp.json()["token"])
        assert cred.expires_at - cred.issued_at == timedelta(days=2)

    @pytest.mark.parametrize("days", [MAX_DAYS_VALID + 1, 3_000_000, 10**12])
    def test_excessive_days_is_400(self, client, make_token, days):
        resp = client.post(
            "/api/issue",
            json={"subject": "acme-corp", "daysValid": days},
            headers=bearer(make_token("admin")),
        )
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": f"daysValid must not exceed {MAX_DAYS_VALID}, got {days}",
        }
        assert get_audit_logger().recent(action="credential.issue") == []

    def test_maximum_days_accepted(self, client, make_token, key_material):
        resp = client.post(
            "/api/issue",
            json={"subject": "acme-corp", "daysValid": MAX_DAYS_VALID},
            headers=bearer(make_token("admin")),
        )
        assert resp.status_code == 200
        cred = CredentialValidator(key_material).validate(resp.json()["token"])
        assert cred.expires_at - cred.issued_at == timedelta(days=MAX_DAYS_VALID)

    def test_missing_subject_is_400(self, client, make_token):
        resp = client.post("/api/issue", json={"scope": "verify"}, headers=bearer(make_token("admin")))
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "subject is required"}

    def test_issue_is_audited(self, client, make_token):
        client.post(
            "/api/issue",
            json={"subject": "acme-corp", "scope": "verify"},
            headers=bearer(make_token("admin", subject="ops")),
        )
        events = get_audit_logger().recent(action="credential.issue")
        assert len(events) == 1
        assert events[0]["principal"] == "ops"
        assert events[0]["details"]["subject"] == "acme-corp"


class TestStartup:
    def test_key_loaded_from_file_at_startup(self, tmp_path, monkeypatch, key_material, issuer):
        import app.main as main_module

        key_file = tmp_path / "server-jwt.key"
        key_file.write_bytes(key_material.to_pem())
        monkeypatch.setattr(main_module, "JWT_SIGNING_KEY_FILE", str(key_file))

        app = main_module.create_app(verifiers={})
        token = issuer.issue("acme-corp", "admin", timedelta(days=1)).token
        with TestClient(app) as client:
            resp = client.post("/api/issue", json={"subject": "x"}, headers=bearer(token))
        assert resp.status_code == 200

    def test_missing_key_file_fails_startup(self, monkeypatch):
        import asyncio

        import app.main as main_module
        from app.auth import KeyMaterialError

        monkeypatch.setattr(main_module, "JWT_SIGNING_KEY_FILE", None)
        app = main_module.create_app(verifiers={})

        async def start():
            async with main_module.lifespan(app):
                pass

        with pytest.raises(KeyMaterialError, match="JWT_SIGNING_KEY_FILE"):
            asyncio.run(start())
