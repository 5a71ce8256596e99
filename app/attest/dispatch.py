"""
Evidence dispatch: decode, classify, route to the family verifier.

Unknown formats never reach a verifier; they are answered with a MALFORMED
verdict naming the version that was seen.
"""

import base64
import binascii
import logging
from typing import Mapping, Optional

from app.attest.classify import EvidenceFamily, classify_evidence, read_quote_version
from app.attest.exceptions import EvidenceInputError, VerifierError
from app.attest.tdx.policy import TdxOptions
from app.attest.verdict import Verdict
from app.attest.verifiers import EvidenceVerifier, ExternalToolVerifier, TdxQuoteVerifier

log = logging.getLogger(__name__)


def decode_quote(encoded: Optional[str]) -> bytes:
    """Decode the base64 'quote' request field.

    Raises:
        EvidenceInputError: If the field is empty or not valid base64
    """
    if not encoded:
        raise EvidenceInputError.missing()
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise EvidenceInputError.invalid_encoding()


def default_verifiers() -> dict[EvidenceFamily, EvidenceVerifier]:
    """Verifier registry used when the application is not given one."""
    return {
        EvidenceFamily.SGX: ExternalToolVerifier(),
        EvidenceFamily.TDX: TdxQuoteVerifier(TdxOptions.from_config()),
    }


class EvidenceDispatcher:
    """Routes raw evidence to the verifier registered for its family."""

    def __init__(self, verifiers: Mapping[EvidenceFamily, EvidenceVerifier]):
        self._verifiers = dict(verifiers)

    def verify(self, raw: bytes) -> Verdict:
        """Classify raw evidence and return the verdict of its verifier.

        Raises:
            VerifierError: If verification could not be carried out
        """
        family = classify_evidence(raw)
        if family == EvidenceFamily.UNKNOWN:
            version = read_quote_version(raw)
            if version is None or len(raw) < 4:
                log.info(f"Rejected evidence too short to classify ({len(raw)} bytes)")
                return Verdict.malformed(
                    f"Unsupported quote format (evidence too short: {len(raw)} bytes)"
                )
            log.info(f"Rejected evidence with unsupported version {version}")
            return Verdict.malformed(f"Unsupported quote format (version {version})")

        log.info(f"Received {family.value.upper()} quote ({len(raw)} bytes)")
        verifier = self._verifiers.get(family)
        if verifier is None:
            raise VerifierError(f"No verifier registered for {family.value} evidence")

        verdict = verifier.verify(raw)
        log.info(f"{family.value.upper()} verdict: {verdict.status.value}")
        return verdict
