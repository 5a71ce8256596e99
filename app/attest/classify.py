"""Evidence format detection.

Quotes are self-describing: the first two bytes hold a little-endian u16
format version. Version 3 is an SGX (enclave) quote and version 4 a TDX
(confidential VM) quote.
"""

import struct
from enum import Enum

from app.core.config import MIN_EVIDENCE_LENGTH, SGX_QUOTE_VERSION, TDX_QUOTE_VERSION


class EvidenceFamily(str, Enum):
    """Verification path selected by the quote version."""
    SGX = "sgx"          # legacy enclave evidence (version 3)
    TDX = "tdx"          # confidential-VM evidence (version 4)
    UNKNOWN = "unknown"


_FAMILY_BY_VERSION = {
    SGX_QUOTE_VERSION: EvidenceFamily.SGX,
    TDX_QUOTE_VERSION: EvidenceFamily.TDX,
}


def read_quote_version(raw: bytes) -> int | None:
    """Return the u16 LE version field, or None if fewer than 2 bytes."""
    if len(raw) < 2:
        return None
    return struct.unpack_from("<H", raw, 0)[0]


def classify_evidence(raw: bytes) -> EvidenceFamily:
    """Map raw evidence bytes to exactly one family.

    Anything shorter than MIN_EVIDENCE_LENGTH bytes is UNKNOWN.
    """
    if len(raw) < MIN_EVIDENCE_LENGTH:
        return EvidenceFamily.UNKNOWN
    return _FAMILY_BY_VERSION.get(read_quote_version(raw), EvidenceFamily.UNKNOWN)
