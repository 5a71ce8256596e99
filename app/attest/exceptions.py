"""
Evidence handling exceptions.

A rejected or malformed quote is a Verdict, not an exception. Exceptions here
cover the two remaining outcomes: the request itself is unusable, or the
gateway failed internally while verifying.
"""

from app.api.models import ErrorCode


class EvidenceInputError(Exception):
    """The request did not carry usable evidence (client error)."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @classmethod
    def missing(cls) -> "EvidenceInputError":
        return cls(ErrorCode.QUOTE_MISSING, "Missing 'quote' field")

    @classmethod
    def invalid_encoding(cls) -> "EvidenceInputError":
        return cls(ErrorCode.QUOTE_ENCODING_INVALID, "Invalid base64 in 'quote' field")


class VerifierError(Exception):
    """Verification could not be carried out (server error).

    Used for temporary file I/O failures, a missing or hung external tool,
    and a family with no registered verifier.
    """

    def __init__(self, message: str, code: str = ErrorCode.VERIFIER_FAILED):
        self.code = code
        self.message = message
        super().__init__(message)
