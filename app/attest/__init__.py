"""Evidence classification, verification and verdict handling."""

from app.attest.classify import EvidenceFamily, classify_evidence, read_quote_version
from app.attest.dispatch import EvidenceDispatcher, decode_quote, default_verifiers
from app.attest.exceptions import EvidenceInputError, VerifierError
from app.attest.responder import error_response, verdict_response
from app.attest.verdict import Verdict, VerdictStatus

__all__ = [
    "EvidenceDispatcher",
    "EvidenceFamily",
    "EvidenceInputError",
    "Verdict",
    "VerdictStatus",
    "VerifierError",
    "classify_evidence",
    "decode_quote",
    "default_verifiers",
    "error_response",
    "read_quote_version",
    "verdict_response",
]
