"""Ed25519 key material for credential signing.

The gateway holds exactly one key pair for its lifetime. It is loaded once at
startup and handed to the issuer and validator explicitly; nothing reads it
from module globals.

Note: pysodium is imported lazily inside functions so that PEM handling and
configuration import without libsodium.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from app.auth.exceptions import KeyMaterialError

log = logging.getLogger(__name__)

ED25519_SEED_SIZE = 32
ED25519_PUBLIC_KEY_SIZE = 32
ED25519_SECRET_KEY_SIZE = 64  # libsodium layout: seed || public key


@dataclass(frozen=True)
class KeyMaterial:
    """Immutable Ed25519 key pair.

    Attributes:
        secret_key: 64-byte libsodium secret key (seed || public key)
        public_key: 32-byte Ed25519 public key
    """

    secret_key: bytes = field(repr=False)
    public_key: bytes

    def __post_init__(self):
        if len(self.secret_key) != ED25519_SECRET_KEY_SIZE:
            raise KeyMaterialError(
                f"Ed25519 secret key must be {ED25519_SECRET_KEY_SIZE} bytes, "
                f"got {len(self.secret_key)}"
            )
        if len(self.public_key) != ED25519_PUBLIC_KEY_SIZE:
            raise KeyMaterialError(
                f"Ed25519 public key must be {ED25519_PUBLIC_KEY_SIZE} bytes, "
                f"got {len(self.public_key)}"
            )
        if self.secret_key[ED25519_SEED_SIZE:] != self.public_key:
            raise KeyMaterialError("Ed25519 public key does not match secret key")

    @classmethod
    def from_seed(cls, seed: bytes) -> "KeyMaterial":
        """Derive the key pair from a 32-byte Ed25519 seed."""
        if len(seed) != ED25519_SEED_SIZE:
            raise KeyMaterialError(
                f"Ed25519 seed must be {ED25519_SEED_SIZE} bytes, got {len(seed)}"
            )
        import pysodium

        public_key, secret_key = pysodium.crypto_sign_seed_keypair(seed)
        return cls(secret_key=secret_key, public_key=public_key)

    @classmethod
    def from_pem(cls, pem_data: bytes) -> "KeyMaterial":
        """Load from a PEM-encoded (PKCS#8) Ed25519 private key."""
        try:
            private_key = serialization.load_pem_private_key(pem_data, password=None)
        except (ValueError, TypeError) as e:
            raise KeyMaterialError(f"Failed to parse Ed25519 private key: {e}")

        if not isinstance(private_key, Ed25519PrivateKey):
            raise KeyMaterialError("Key is not an Ed25519 private key")

        seed = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return cls.from_seed(seed)

    @classmethod
    def generate(cls) -> "KeyMaterial":
        """Generate a fresh random key pair."""
        import pysodium

        public_key, secret_key = pysodium.crypto_sign_keypair()
        return cls(secret_key=secret_key, public_key=public_key)

    def to_pem(self) -> bytes:
        """Serialize the private key as unencrypted PKCS#8 PEM."""
        private_key = Ed25519PrivateKey.from_private_bytes(self.secret_key[:ED25519_SEED_SIZE])
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


def load_key_material(path: str | Path | None) -> KeyMaterial:
    """Load the process signing key from a PEM file.

    Args:
        path: Path to a PEM-encoded Ed25519 private key

    Returns:
        KeyMaterial derived from the file

    Raises:
        KeyMaterialError: If the path is unset, unreadable, or not an Ed25519 key
    """
    if not path:
        raise KeyMaterialError("JWT_SIGNING_KEY_FILE environment variable is required")

    key_path = Path(path)
    try:
        pem_data = key_path.read_bytes()
    except OSError as e:
        raise KeyMaterialError(f"Failed to read signing key {key_path}: {e}")

    if b"-----BEGIN" not in pem_data:
        raise KeyMaterialError(f"No PEM block found in {key_path}")

    material = KeyMaterial.from_pem(pem_data)
    log.info(f"Loaded Ed25519 signing key from {key_path}")
    return material
