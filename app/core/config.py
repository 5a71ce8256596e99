"""
Attestation gateway configuration constants.

Constants are organized into:
- NORMATIVE: Fixed by the credential format, cannot be changed by deployment
- CONFIGURABLE: Defaults that may be overridden by deployment policy
- OPERATIONAL: Deployment-specific settings (env vars)
"""

import os

# =============================================================================
# NORMATIVE CONSTANTS
# =============================================================================

# Allowed credential signing algorithms.
# Credentials are Ed25519 signed JWS tokens; the JOSE name is "EdDSA".
ALLOWED_ALGORITHMS: frozenset[str] = frozenset({"EdDSA"})

# Algorithms that are always refused, even if ALLOWED_ALGORITHMS is widened.
FORBIDDEN_ALGORITHMS: frozenset[str] = frozenset({
    "ES256", "ES384", "ES512",
    "HS256", "HS384", "HS512",
    "RS256", "RS384", "RS512",
    "PS256", "PS384", "PS512",
    "none",
})

# Algorithm written into the header of every issued credential
SIGNING_ALGORITHM: str = "EdDSA"

# Scope names checked by the HTTP endpoints
VERIFY_SCOPE: str = "verify"
ADMIN_SCOPE: str = "admin"

# Evidence format discriminators (u16 little-endian at offset 0)
SGX_QUOTE_VERSION: int = 3
TDX_QUOTE_VERSION: int = 4
MIN_EVIDENCE_LENGTH: int = 4

# =============================================================================
# CONFIGURABLE DEFAULTS
# =============================================================================

# Issuer claim ("iss") stamped on every credential
CREDENTIAL_ISSUER: str = os.getenv("GATEWAY_CREDENTIAL_ISSUER", "attestation-gateway")

# Defaults applied by the issuance endpoint and CLI (not by the issuer itself)
DEFAULT_SCOPE: str = os.getenv("GATEWAY_DEFAULT_SCOPE", VERIFY_SCOPE)
DEFAULT_DAYS_VALID: int = int(os.getenv("GATEWAY_DEFAULT_DAYS_VALID", "30"))
DEFAULT_SUBJECT: str = "user"

# Longest credential lifetime the endpoint and CLI will issue
MAX_DAYS_VALID: int = int(os.getenv("GATEWAY_MAX_DAYS_VALID", "3650"))

# External SGX verification tool
# The tool is invoked as: <SGX_CHECK_TOOL> -in <quote file>
SGX_CHECK_TOOL: str = os.getenv("SGX_CHECK_TOOL", "/usr/local/bin/check")

# Upper bound on a single external tool run. A run that exceeds it is killed
# and reported as an internal error.
SGX_CHECK_TIMEOUT_SECONDS: float = float(os.getenv("SGX_CHECK_TIMEOUT_SECONDS", "30"))

# TDX trust policy
# TDX_TRUSTED_ROOTS_FILE: PEM bundle of accepted root CA certificates. When
# unset, only the built-in Intel SGX Root CA is accepted.
# TDX_CHECK_VALIDITY: enforce certificate validity periods against the
# current time. Disable only for replaying archived quotes.
TDX_TRUSTED_ROOTS_FILE: str | None = os.getenv("TDX_TRUSTED_ROOTS_FILE") or None
TDX_CHECK_VALIDITY: bool = os.getenv("TDX_CHECK_VALIDITY", "true").lower() == "true"

# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

# JWT_SIGNING_KEY_FILE must point to a PEM-encoded Ed25519 private key.
# The corresponding public key is derived automatically.
#
#   Generate with:
#     openssl genpkey -algorithm Ed25519 -out server-jwt.key
JWT_SIGNING_KEY_FILE: str | None = os.getenv("JWT_SIGNING_KEY_FILE") or None

# Logging
LOG_LEVEL: str = os.getenv("GATEWAY_LOG_LEVEL", "INFO").upper()
LOG_FILE: str | None = os.getenv("GATEWAY_LOG_FILE") or None

# Audit logging
AUDIT_ENABLED: bool = os.getenv("GATEWAY_AUDIT_ENABLED", "true").lower() == "true"
