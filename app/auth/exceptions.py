"""
Credential exceptions.

Each exception carries an error code from ErrorCode. Authentication and
authorization failures are distinct types so the HTTP layer can answer them
with 401 and 403 respectively.
"""

from app.api.models import ErrorCode


class CredentialError(Exception):
    """Base exception for credential operations."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class AuthenticationError(CredentialError):
    """The presented credential could not be authenticated."""

    @classmethod
    def missing(cls, reason: str = "Missing Authorization header") -> "AuthenticationError":
        """Factory for CREDENTIAL_MISSING error."""
        return cls(code=ErrorCode.CREDENTIAL_MISSING, message=reason)

    @classmethod
    def malformed(cls, reason: str) -> "AuthenticationError":
        """Factory for CREDENTIAL_MALFORMED error.

        Used for:
        - Wrong number of token segments
        - Invalid base64url/JSON
        - Missing or mistyped claims
        """
        return cls(
            code=ErrorCode.CREDENTIAL_MALFORMED,
            message=f"credential malformed: {reason}",
        )

    @classmethod
    def forbidden_alg(cls, alg: str) -> "AuthenticationError":
        """Factory for CREDENTIAL_FORBIDDEN_ALG error."""
        return cls(
            code=ErrorCode.CREDENTIAL_FORBIDDEN_ALG,
            message=f"unexpected signing method: {alg}",
        )

    @classmethod
    def signature_invalid(cls) -> "AuthenticationError":
        """Factory for CREDENTIAL_SIG_INVALID error."""
        return cls(
            code=ErrorCode.CREDENTIAL_SIG_INVALID,
            message="credential signature is invalid",
        )

    @classmethod
    def expired(cls, reason: str) -> "AuthenticationError":
        """Factory for CREDENTIAL_EXPIRED error."""
        return cls(
            code=ErrorCode.CREDENTIAL_EXPIRED,
            message=f"credential expired: {reason}",
        )


class AuthorizationError(CredentialError):
    """The credential is authentic but does not grant the required scope."""

    def __init__(self, required_scope: str, granted_scope: str):
        self.required_scope = required_scope
        self.granted_scope = granted_scope
        super().__init__(
            ErrorCode.CREDENTIAL_SCOPE_INSUFFICIENT,
            f"scope '{required_scope}' not granted (has '{granted_scope}')",
        )


class IssuanceError(CredentialError):
    """A credential could not be issued from the given parameters."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.ISSUANCE_INVALID, message)


class KeyMaterialError(CredentialError):
    """Signing key material is absent or unusable."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.KEY_MATERIAL_INVALID, message)
