"""
TDX QuoteV4 trust policy.

Checks performed, in order:
1. Quote signature: ECDSA-P256 over header+body with the embedded attestation key
2. QE binding: QE report_data = sha256(attestation_key || qe_auth_data) || 32 zero bytes
3. QE report signature: ECDSA-P256 with the PCK leaf certificate key
4. PCK chain: each certificate directly issued by the next, root self-signed
5. Root pinning: the chain root must be one of the trusted roots
   (the Intel SGX Root CA unless configured otherwise)
6. Certificate validity periods (on by default)

Collateral (TCB info, QE identity, CRLs) is not consulted.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, utils

from app.attest.tdx.abi import QuoteV4
from app.attest.tdx.roots import default_trusted_roots
from app.core.config import TDX_CHECK_VALIDITY, TDX_TRUSTED_ROOTS_FILE

log = logging.getLogger(__name__)

_PEM_CERT = re.compile(
    b"-----BEGIN CERTIFICATE-----\\s+.+?\\s+-----END CERTIFICATE-----",
    re.DOTALL,
)


class QuotePolicyError(ValueError):
    """Raised when a well-formed quote does not satisfy the trust policy."""


@dataclass(frozen=True)
class TdxOptions:
    """Trust policy knobs.

    Attributes:
        trusted_roots: Accepted root certificates (Intel SGX Root CA by default)
        check_validity: Enforce notBefore/notAfter on every chain certificate
        now: Fixed evaluation time for validity checks (defaults to current time)
    """

    trusted_roots: tuple[x509.Certificate, ...] = field(default_factory=default_trusted_roots)
    check_validity: bool = True
    now: Optional[datetime] = None

    @classmethod
    def from_config(cls) -> "TdxOptions":
        roots = default_trusted_roots()
        if TDX_TRUSTED_ROOTS_FILE:
            roots = tuple(load_trusted_roots(TDX_TRUSTED_ROOTS_FILE))
            log.info(f"Loaded {len(roots)} trusted TDX root(s) from {TDX_TRUSTED_ROOTS_FILE}")
        if not TDX_CHECK_VALIDITY:
            log.warning("TDX certificate validity checking is disabled")
        return cls(trusted_roots=roots, check_validity=TDX_CHECK_VALIDITY)


def load_trusted_roots(path: str) -> list[x509.Certificate]:
    """Load a PEM bundle of root certificates.

    Raises:
        ValueError: If the file cannot be read or holds no certificate
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ValueError(f"Cannot read trusted roots file {path}: {e}")
    roots = extract_pem_certificates(data)
    if not roots:
        raise ValueError(f"No PEM certificates found in {path}")
    return roots


def extract_pem_certificates(data: bytes) -> list[x509.Certificate]:
    return [x509.load_pem_x509_certificate(block) for block in _PEM_CERT.findall(data)]


def verify_quote(quote: QuoteV4, options: TdxOptions) -> None:
    """Apply the trust policy to a parsed quote.

    Raises:
        QuotePolicyError: On the first failed check
    """
    verify_quote_signature(quote)
    verify_qe_report_binding(quote)

    chain = _load_chain(quote.certification.pck_cert_chain)
    verify_qe_report_signature(quote, chain[0])
    verify_cert_chain(chain, options)

    log.info(f"TDX quote accepted mr_td={quote.body.mr_td.hex()}")


def verify_quote_signature(quote: QuoteV4) -> None:
    ak = quote.attestation_key
    x = int.from_bytes(ak[:32], "big")
    y = int.from_bytes(ak[32:], "big")
    try:
        public_key = ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()
    except ValueError as e:
        raise QuotePolicyError(f"invalid attestation key: {e}")

    if not _ecdsa_raw_verify(public_key, quote.signature, quote.signed_part):
        raise QuotePolicyError("quote signature mismatch")


def verify_qe_report_binding(quote: QuoteV4) -> None:
    cert_data = quote.certification
    report_data = cert_data.qe_report_data
    expected = hashlib.sha256(quote.attestation_key + cert_data.qe_auth_data).digest()

    if report_data[:32] != expected:
        raise QuotePolicyError("QE report_data hash mismatch")
    if report_data[32:] != b"\x00" * 32:
        raise QuotePolicyError("QE report_data trailing 32 bytes are not zero")


def verify_qe_report_signature(quote: QuoteV4, pck_leaf: x509.Certificate) -> None:
    public_key = pck_leaf.public_key()
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise QuotePolicyError("PCK certificate public key is not ECDSA")

    cert_data = quote.certification
    if not _ecdsa_raw_verify(public_key, cert_data.qe_report_signature, cert_data.qe_report):
        raise QuotePolicyError("QE report signature mismatch")


def verify_cert_chain(chain: list[x509.Certificate], options: TdxOptions) -> None:
    """Verify leaf-first chain links, root self-signature, pinning and validity."""
    for child, issuer in zip(chain, chain[1:]):
        _verify_issued_by(child, issuer)

    root = chain[-1]
    if root.issuer != root.subject:
        raise QuotePolicyError("PCK chain does not end in a self-signed root")
    _verify_issued_by(root, root)

    pinned = {r.fingerprint(hashes.SHA256()) for r in options.trusted_roots}
    if root.fingerprint(hashes.SHA256()) not in pinned:
        raise QuotePolicyError(
            f"PCK chain root is not trusted: {root.subject.rfc4514_string()}"
        )

    if options.check_validity:
        now = options.now or datetime.now(timezone.utc)
        for cert in chain:
            if not (cert.not_valid_before_utc <= now <= cert.not_valid_after_utc):
                raise QuotePolicyError(
                    f"certificate outside validity period: {cert.subject.rfc4514_string()}"
                )


def _load_chain(pem_chain: bytes) -> list[x509.Certificate]:
    try:
        chain = extract_pem_certificates(pem_chain)
    except ValueError as e:
        raise QuotePolicyError(f"invalid PCK certificate: {e}")
    if len(chain) < 3:
        raise QuotePolicyError(
            f"PCK chain must contain leaf, intermediate and root, got {len(chain)} certificate(s)"
        )
    return chain


def _verify_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> None:
    try:
        cert.verify_directly_issued_by(issuer)
    except (InvalidSignature, ValueError, TypeError) as e:
        raise QuotePolicyError(
            f"certificate {cert.subject.rfc4514_string()} not issued by "
            f"{issuer.subject.rfc4514_string()}: {str(e) or 'signature mismatch'}"
        )


def _ecdsa_raw_verify(public_key: ec.EllipticCurvePublicKey, signature: bytes, payload: bytes) -> bool:
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    try:
        public_key.verify(
            utils.encode_dss_signature(r, s), payload, ec.ECDSA(hashes.SHA256())
        )
    except InvalidSignature:
        return False
    return True
