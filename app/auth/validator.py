"""
Credential parser and validator.

Validation order:
1. Structure (three base64url segments, JSON header)
2. Algorithm pinning, before any cryptographic work
3. Ed25519 signature over header.payload
4. Claims (sub, iat, exp, jti, scope)
5. Expiry (valid strictly before exp)
6. Scope (exact token match)
"""

import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from app.audit.logger import AuditLogger, get_audit_logger
from app.auth.credential import Credential
from app.auth.exceptions import AuthenticationError, AuthorizationError
from app.auth.keys import KeyMaterial
from app.core.config import ALLOWED_ALGORITHMS, FORBIDDEN_ALGORITHMS

log = logging.getLogger(__name__)


class CredentialValidator:
    """Authenticates presented tokens against the process public key."""

    def __init__(self, key_material: KeyMaterial, audit: Optional[AuditLogger] = None):
        self._public_key = key_material.public_key
        self._audit = audit

    def validate(
        self,
        token: Optional[str],
        required_scope: str = "",
        now: Optional[datetime] = None,
    ) -> Credential:
        """Parse and validate a bearer token.

        Args:
            token: The compact token string (header.payload.signature)
            required_scope: Scope that must be granted; empty skips the check
            now: Current time (defaults to the current UTC time)

        Returns:
            The decoded Credential

        Raises:
            AuthenticationError: Malformed, wrong algorithm, bad signature or expired
            AuthorizationError: Authentic but missing required_scope
        """
        if not token or not token.strip():
            raise AuthenticationError.missing("credential is missing or empty")

        token = token.strip()
        if not token.isascii():
            raise AuthenticationError.malformed("token contains non-ASCII characters")

        parts = token.split(".")
        if len(parts) != 3:
            raise AuthenticationError.malformed(
                f"token must have 3 parts (header.payload.signature), got {len(parts)}"
            )
        raw_header, raw_payload, raw_signature = parts

        header = _decode_json_part(raw_header, "header")
        alg = header.get("alg")
        if not isinstance(alg, str):
            raise AuthenticationError.malformed("header missing required field: alg")
        _validate_algorithm(alg)

        signature = _decode_segment(raw_signature, "signature")
        self._verify_signature(f"{raw_header}.{raw_payload}".encode("ascii"), signature)

        claims = _decode_json_part(raw_payload, "payload")
        credential = _parse_claims(claims)

        if now is None:
            now = datetime.now(timezone.utc)
        if not now < credential.expires_at:
            raise AuthenticationError.expired(
                f"now={now.isoformat()}, exp={credential.expires_at.isoformat()}"
            )

        if required_scope and not credential.has_scope(required_scope):
            raise AuthorizationError(required_scope, credential.scope)

        (self._audit or get_audit_logger()).auth_success(credential)
        return credential

    def _verify_signature(self, signing_input: bytes, signature: bytes) -> None:
        import pysodium

        try:
            # raises ValueError if invalid
            pysodium.crypto_sign_verify_detached(signature, signing_input, self._public_key)
        except Exception:
            raise AuthenticationError.signature_invalid()


def _validate_algorithm(alg: str) -> None:
    """Reject every algorithm except the pinned one."""
    if alg in FORBIDDEN_ALGORITHMS or alg.lower() == "none":
        raise AuthenticationError.forbidden_alg(alg)
    if alg not in ALLOWED_ALGORITHMS:
        raise AuthenticationError.forbidden_alg(alg)


def _decode_segment(encoded: str, part_name: str) -> bytes:
    """Decode a base64url token segment, restoring padding."""
    try:
        padded = encoded + "=" * (-len(encoded) % 4)
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as e:
        raise AuthenticationError.malformed(f"{part_name} base64url decode failed: {e}")


def _decode_json_part(encoded: str, part_name: str) -> dict[str, Any]:
    decoded_bytes = _decode_segment(encoded, part_name)
    try:
        parsed = json.loads(decoded_bytes)
    except json.JSONDecodeError as e:
        raise AuthenticationError.malformed(f"{part_name} JSON parse failed: {e}")
    except UnicodeDecodeError as e:
        raise AuthenticationError.malformed(f"{part_name} invalid UTF-8: {e}")
    if not isinstance(parsed, dict):
        raise AuthenticationError.malformed(f"{part_name} JSON root must be an object")
    return parsed


def _parse_claims(data: dict[str, Any]) -> Credential:
    subject = _require_string(data, "sub")
    iat = _require_integer(data, "iat")
    exp = _require_integer(data, "exp")
    jti = _require_string(data, "jti")

    scope = data.get("scope", "")
    if not isinstance(scope, str):
        raise AuthenticationError.malformed("payload field scope must be a string")

    issuer = data.get("iss")
    if not isinstance(issuer, str):
        issuer = ""

    if exp <= iat:
        raise AuthenticationError.malformed(
            f"exp must be greater than iat: exp={exp}, iat={iat}"
        )

    try:
        issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise AuthenticationError.malformed(f"timestamp out of range: {e}")

    return Credential(
        subject=subject,
        scope=scope,
        issued_at=issued_at,
        expires_at=expires_at,
        id=jti,
        issuer=issuer,
    )


def _require_string(data: dict[str, Any], field: str) -> str:
    """Require a non-empty string claim."""
    if field not in data:
        raise AuthenticationError.malformed(f"payload missing required field: {field}")
    value = data[field]
    if not isinstance(value, str) or not value.strip():
        raise AuthenticationError.malformed(f"payload field {field} must be a non-empty string")
    return value


def _require_integer(data: dict[str, Any], field: str) -> int:
    """Require an integer NumericDate claim."""
    if field not in data:
        raise AuthenticationError.malformed(f"payload missing required field: {field}")
    value = data[field]
    if isinstance(value, bool):
        raise AuthenticationError.malformed(f"payload field {field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise AuthenticationError.malformed(f"payload field {field} must be an integer")
