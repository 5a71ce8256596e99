"""Parse-then-verify evidence verifier.

Raw bytes are decoded into a structured quote first; a decode failure is a
MALFORMED verdict. The decoded quote is then checked against a trust policy;
a policy failure is REJECTED.
"""

import logging
from typing import Any, Callable

from app.attest.classify import EvidenceFamily
from app.attest.tdx.abi import QuoteParseError, parse_quote
from app.attest.tdx.policy import QuotePolicyError, TdxOptions, verify_quote
from app.attest.verdict import Verdict
from app.attest.verifiers.base import EvidenceVerifier

log = logging.getLogger(__name__)

Decoder = Callable[[bytes], Any]
TrustPolicy = Callable[[Any], None]


class ParsedQuoteVerifier(EvidenceVerifier):
    """Generic decode + policy verifier.

    Args:
        family: Evidence family this verifier serves
        decode: Turns raw bytes into a structured quote; raises one of
            decode_errors on malformed input
        check: Validates the structured quote; raises one of policy_errors
            when the quote does not satisfy the trust policy
        label: Human-readable name used in verdict messages
    """

    def __init__(
        self,
        family: EvidenceFamily,
        decode: Decoder,
        check: TrustPolicy,
        label: str,
        decode_errors: tuple[type[Exception], ...] = (ValueError,),
        policy_errors: tuple[type[Exception], ...] = (ValueError,),
        verified_message: str | None = None,
    ):
        self.family = family
        self._decode = decode
        self._check = check
        self._label = label
        self._decode_errors = decode_errors
        self._policy_errors = policy_errors
        self._verified_message = verified_message or f"{label} quote verified"

    def verify(self, raw: bytes) -> Verdict:
        try:
            quote = self._decode(raw)
        except self._decode_errors as e:
            log.info(f"{self._label} quote parse failed: {e}")
            return Verdict.malformed(f"Failed to parse {self._label} quote: {e}", self.family)

        try:
            self._check(quote)
        except self._policy_errors as e:
            log.info(f"{self._label} quote verification failed: {e}")
            return Verdict.rejected(
                f"{self._label} quote verification failed: {e}", self.family
            )

        return Verdict.verified(self._verified_message, self.family)


class TdxQuoteVerifier(ParsedQuoteVerifier):
    """Native TDX QuoteV4 verifier (signature + certificate chain).

    No collateral/TCB checks are made; TdxOptions controls root pinning
    and certificate validity enforcement.
    """

    def __init__(self, options: TdxOptions | None = None):
        self.options = options or TdxOptions()
        super().__init__(
            family=EvidenceFamily.TDX,
            decode=parse_quote,
            check=lambda quote: verify_quote(quote, self.options),
            label="TDX",
            decode_errors=(QuoteParseError,),
            policy_errors=(QuotePolicyError,),
            verified_message="TDX quote verified (signature + certificate chain)",
        )
