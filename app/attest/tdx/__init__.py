"""Native TDX QuoteV4 decoding and trust policy."""

from app.attest.tdx.abi import QuoteParseError, QuoteV4, parse_quote
from app.attest.tdx.policy import QuotePolicyError, TdxOptions, verify_quote

__all__ = [
    "QuoteParseError",
    "QuotePolicyError",
    "QuoteV4",
    "TdxOptions",
    "parse_quote",
    "verify_quote",
]
