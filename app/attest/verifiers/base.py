"""Evidence verifier interface."""

from abc import ABC, abstractmethod

from app.attest.classify import EvidenceFamily
from app.attest.verdict import Verdict


class EvidenceVerifier(ABC):
    """Verifies raw evidence of one family.

    Implementations return a Verdict for anything they could evaluate and
    raise VerifierError only when verification could not be carried out.
    """

    family: EvidenceFamily = EvidenceFamily.UNKNOWN

    @abstractmethod
    def verify(self, raw: bytes) -> Verdict:
        """Verify raw quote bytes."""
