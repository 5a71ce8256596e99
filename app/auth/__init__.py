"""Credential issuance and validation for the attestation gateway."""

from app.auth.credential import Credential, CredentialIssuer, SignedCredential
from app.auth.dependencies import require_admin, require_scope, require_verify
from app.auth.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CredentialError,
    IssuanceError,
    KeyMaterialError,
)
from app.auth.keys import KeyMaterial, load_key_material
from app.auth.validator import CredentialValidator

__all__ = [
    "Credential",
    "CredentialIssuer",
    "SignedCredential",
    "CredentialValidator",
    "KeyMaterial",
    "load_key_material",
    "require_scope",
    "require_admin",
    "require_verify",
    "CredentialError",
    "AuthenticationError",
    "AuthorizationError",
    "IssuanceError",
    "KeyMaterialError",
]
