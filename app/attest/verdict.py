"""
Verification verdicts.

Three outcomes, with different trust implications:
- VERIFIED: signature and certificate chain checked out
- REJECTED: the evidence was checked and failed
- MALFORMED: verification was never attempted; the input did not parse
"""

from dataclasses import dataclass
from enum import Enum

from app.attest.classify import EvidenceFamily


class VerdictStatus(str, Enum):
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    MALFORMED = "MALFORMED"


@dataclass(frozen=True)
class Verdict:
    """Outcome of verifying one piece of evidence."""
    status: VerdictStatus
    message: str
    family: EvidenceFamily = EvidenceFamily.UNKNOWN

    @classmethod
    def verified(cls, message: str, family: EvidenceFamily = EvidenceFamily.UNKNOWN) -> "Verdict":
        return cls(VerdictStatus.VERIFIED, message, family)

    @classmethod
    def rejected(cls, message: str, family: EvidenceFamily = EvidenceFamily.UNKNOWN) -> "Verdict":
        return cls(VerdictStatus.REJECTED, message, family)

    @classmethod
    def malformed(cls, message: str, family: EvidenceFamily = EvidenceFamily.UNKNOWN) -> "Verdict":
        return cls(VerdictStatus.MALFORMED, message, family)
