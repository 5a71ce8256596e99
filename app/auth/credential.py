"""Scoped API credential creation.

Credentials are compact JWS tokens signed with the gateway's Ed25519 key:

    base64url(header).base64url(payload).base64url(signature)

with header {"alg": "EdDSA", "typ": "JWT"} and payload claims
iss, sub, iat, exp, jti and scope. The validator in app.auth.validator is the
inverse of this module.
"""

import base64
import json
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.auth.exceptions import IssuanceError, KeyMaterialError
from app.auth.keys import KeyMaterial
from app.core.config import CREDENTIAL_ISSUER, MAX_DAYS_VALID, SIGNING_ALGORITHM

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """Decoded credential claims.

    Attributes:
        subject: Holder of the credential (e.g. "acme-corp")
        scope: Comma-separated granted capabilities (e.g. "verify,admin")
        issued_at: Issuance time (UTC)
        expires_at: Expiry time (UTC); the credential is valid strictly before it
        id: Unique issuance id, for traceability only
        issuer: Issuer claim
    """

    subject: str
    scope: str
    issued_at: datetime
    expires_at: datetime
    id: str
    issuer: str = CREDENTIAL_ISSUER

    def has_scope(self, required_scope: str) -> bool:
        """Exact, case-sensitive membership test. No wildcards or hierarchy."""
        return any(s.strip() == required_scope for s in self.scope.split(","))

    def to_claims(self) -> dict:
        return {
            "iss": self.issuer,
            "sub": self.subject,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
            "jti": self.id,
            "scope": self.scope,
        }


@dataclass(frozen=True)
class SignedCredential:
    """An issued credential and its serialized token."""

    token: str
    credential: Credential


def validity_from_days(days: int) -> timedelta:
    """Credential lifetime for a requested day count.

    Raises:
        IssuanceError: If days exceeds MAX_DAYS_VALID
    """
    if days > MAX_DAYS_VALID:
        raise IssuanceError(f"daysValid must not exceed {MAX_DAYS_VALID}, got {days}")
    try:
        return timedelta(days=days)
    except OverflowError:
        raise IssuanceError(f"daysValid out of range: {days}")


def base64url_encode(data: bytes) -> str:
    """Encode bytes as base64url without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def encode_token(header: dict, claims: dict, secret_key: bytes) -> str:
    """Serialize and sign header and claims as a compact JWS.

    The signing input is the exact ASCII string base64url(header).base64url(payload).
    """
    import pysodium

    header_b64 = base64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = base64url_encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")

    try:
        signature = pysodium.crypto_sign_detached(signing_input, secret_key)
    except Exception as e:
        raise KeyMaterialError(f"Failed to sign credential: {e}")

    return f"{header_b64}.{payload_b64}.{base64url_encode(signature)}"


class CredentialIssuer:
    """Signs scoped, expiring credentials with the process key."""

    def __init__(self, key_material: KeyMaterial, issuer: str = CREDENTIAL_ISSUER):
        if key_material is None:
            raise KeyMaterialError("Signing key material is not loaded")
        self._key_material = key_material
        self._issuer = issuer

    def issue(
        self,
        subject: str,
        scope: str,
        validity: timedelta,
        now: datetime | None = None,
    ) -> SignedCredential:
        """Create a signed credential valid for the given duration.

        Args:
            subject: Identifies the holder (e.g. "acme-corp", "alice@example.com")
            scope: Comma-separated list of allowed actions (e.g. "verify")
            validity: Lifetime of the credential, must be positive
            now: Issuance time (defaults to the current UTC time)

        Returns:
            SignedCredential with token and decoded claims

        Raises:
            IssuanceError: If subject is empty or validity is not positive
                or too large to represent
            KeyMaterialError: If signing fails
        """
        if not subject:
            raise IssuanceError("subject is required")
        if validity <= timedelta(0):
            raise IssuanceError(f"validity must be positive, got {validity}")

        if now is None:
            now = datetime.now(timezone.utc)

        # NumericDate claims are whole seconds; round the lifetime up so that
        # exp > iat holds for any positive validity.
        issued_at = now.replace(microsecond=0)
        lifetime = math.ceil(validity.total_seconds())
        try:
            expires_at = issued_at + timedelta(seconds=lifetime)
        except OverflowError:
            raise IssuanceError(f"validity out of range: {validity}")

        credential = Credential(
            subject=subject,
            scope=scope,
            issued_at=issued_at,
            expires_at=expires_at,
            id=str(time.time_ns()),
            issuer=self._issuer,
        )

        header = {"alg": SIGNING_ALGORITHM, "typ": "JWT"}
        token = encode_token(header, credential.to_claims(), self._key_material.secret_key)

        log.info(
            f"Issued credential jti={credential.id} sub={subject!r} "
            f"scope={scope} exp={expires_at.isoformat()}"
        )
        return SignedCredential(token=token, credential=credential)
