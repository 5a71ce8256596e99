"""Evidence verifiers, one per evidence family."""

from app.attest.verifiers.base import EvidenceVerifier
from app.attest.verifiers.external import ExternalToolVerifier, scratch_file
from app.attest.verifiers.parsed import ParsedQuoteVerifier, TdxQuoteVerifier

__all__ = [
    "EvidenceVerifier",
    "ExternalToolVerifier",
    "ParsedQuoteVerifier",
    "TdxQuoteVerifier",
    "scratch_file",
]
