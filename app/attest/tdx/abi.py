"""
TDX QuoteV4 binary layout and parser.

Layout (all integers little-endian):

    0x000  header          48 bytes   version, attestation key type, TEE type,
                                      reserved, QE vendor id, user data
    0x030  TD quote body  584 bytes   measurements and report data
    0x278  signed data size  u32
    0x27C  signed data
             signature            64 bytes  ECDSA-P256 r||s over header+body
             attestation key      64 bytes  raw P-256 point x||y
             certification data   u16 type (6) + u32 size + payload
                 QE report              384 bytes
                 QE report signature     64 bytes
                 QE auth data           u16 size + bytes
                 PCK chain              u16 type (5) + u32 size + PEM chain
"""

import struct
from dataclasses import dataclass

HEADER_SIZE = 0x30
TD_QUOTE_BODY_SIZE = 0x248
SIGNED_QUOTE_PART_SIZE = HEADER_SIZE + TD_QUOTE_BODY_SIZE
QUOTE_SIGNED_DATA_START = SIGNED_QUOTE_PART_SIZE + 4
QE_REPORT_SIZE = 0x180
SIGNATURE_SIZE = 0x40
ATTESTATION_KEY_SIZE = 0x40
CERT_DATA_HEADER_SIZE = 6

QUOTE_VERSION_V4 = 4
ATTESTATION_KEY_TYPE_ECDSA_P256 = 2
TEE_TDX = 0x00000081

CERT_DATA_TYPE_PCK_CERT_CHAIN = 5
CERT_DATA_TYPE_QE_REPORT = 6

# Intel QE Vendor ID: 939a7233-f79c-4ca9-940a-0db3957f0607
INTEL_QE_VENDOR_ID = bytes.fromhex("939a7233f79c4ca9940a0db3957f0607")

# Offsets inside the TD quote body
TD_MR_TD = slice(0x88, 0xB8)

# QE report_data occupies the last 64 bytes of the QE report
QE_REPORT_DATA = slice(0x140, 0x180)


class QuoteParseError(ValueError):
    """Raised when quote bytes do not match the QuoteV4 layout."""


@dataclass(frozen=True)
class TdxHeader:
    version: int
    attestation_key_type: int
    tee_type: int
    qe_vendor_id: bytes
    user_data: bytes


@dataclass(frozen=True)
class TdQuoteBody:
    raw: bytes

    @property
    def mr_td(self) -> bytes:
        return self.raw[TD_MR_TD]


@dataclass(frozen=True)
class QeReportCertificationData:
    qe_report: bytes
    qe_report_signature: bytes
    qe_auth_data: bytes
    pck_cert_chain: bytes  # PEM, leaf first

    @property
    def qe_report_data(self) -> bytes:
        return self.qe_report[QE_REPORT_DATA]


@dataclass(frozen=True)
class QuoteV4:
    header: TdxHeader
    body: TdQuoteBody
    signature: bytes
    attestation_key: bytes
    certification: QeReportCertificationData
    signed_part: bytes  # header + body, the input of the quote signature


def parse_quote(data: bytes) -> QuoteV4:
    """Parse a TDX QuoteV4 from raw bytes.

    Raises:
        QuoteParseError: If the bytes are truncated, inconsistent, or not a
            QuoteV4 with ECDSA-P256 attestation key and type-6 certification data
    """
    if len(data) < QUOTE_SIGNED_DATA_START:
        raise QuoteParseError(
            f"quote too short: {len(data)} bytes, minimum {QUOTE_SIGNED_DATA_START}"
        )

    header = _parse_header(data[:HEADER_SIZE])
    _validate_header(header)
    body = TdQuoteBody(raw=data[HEADER_SIZE:SIGNED_QUOTE_PART_SIZE])

    (signed_data_size,) = struct.unpack_from("<I", data, SIGNED_QUOTE_PART_SIZE)
    signed_data_end = QUOTE_SIGNED_DATA_START + signed_data_size
    if len(data) < signed_data_end:
        raise QuoteParseError(
            f"quote truncated: signed data size is {signed_data_size}, "
            f"but only {len(data) - QUOTE_SIGNED_DATA_START} bytes available"
        )
    signed_data = data[QUOTE_SIGNED_DATA_START:signed_data_end]

    min_signed = SIGNATURE_SIZE + ATTESTATION_KEY_SIZE + CERT_DATA_HEADER_SIZE
    if len(signed_data) < min_signed:
        raise QuoteParseError(
            f"signed data too short: {len(signed_data)} bytes, minimum {min_signed}"
        )

    signature = signed_data[:SIGNATURE_SIZE]
    attestation_key = signed_data[SIGNATURE_SIZE:SIGNATURE_SIZE + ATTESTATION_KEY_SIZE]
    cert_type, cert_payload = _read_cert_data(signed_data[SIGNATURE_SIZE + ATTESTATION_KEY_SIZE:])

    if cert_type != CERT_DATA_TYPE_QE_REPORT:
        raise QuoteParseError(
            f"unsupported certification data type {cert_type}, "
            f"expected {CERT_DATA_TYPE_QE_REPORT} (QE report certification data)"
        )

    return QuoteV4(
        header=header,
        body=body,
        signature=signature,
        attestation_key=attestation_key,
        certification=_parse_qe_report_certification_data(cert_payload),
        signed_part=data[:SIGNED_QUOTE_PART_SIZE],
    )


def _parse_header(data: bytes) -> TdxHeader:
    version, ak_type, tee_type = struct.unpack_from("<HHI", data, 0)
    return TdxHeader(
        version=version,
        attestation_key_type=ak_type,
        tee_type=tee_type,
        qe_vendor_id=data[0x0C:0x1C],
        user_data=data[0x1C:0x30],
    )


def _validate_header(header: TdxHeader) -> None:
    if header.version != QUOTE_VERSION_V4:
        raise QuoteParseError(
            f"unsupported quote version: {header.version}, expected {QUOTE_VERSION_V4}"
        )
    if header.attestation_key_type != ATTESTATION_KEY_TYPE_ECDSA_P256:
        raise QuoteParseError(
            f"unsupported attestation key type: {header.attestation_key_type}, "
            f"expected {ATTESTATION_KEY_TYPE_ECDSA_P256} (ECDSA-P256)"
        )
    if header.tee_type != TEE_TDX:
        raise QuoteParseError(
            f"invalid TEE type: 0x{header.tee_type:x}, expected 0x{TEE_TDX:x} (TDX)"
        )
    if header.qe_vendor_id != INTEL_QE_VENDOR_ID:
        raise QuoteParseError(f"unknown QE vendor ID: {header.qe_vendor_id.hex()}")


def _read_cert_data(data: bytes) -> tuple[int, bytes]:
    """Read a (u16 type, u32 size, payload) record that must fill `data` exactly."""
    if len(data) < CERT_DATA_HEADER_SIZE:
        raise QuoteParseError("certification data too short for header")
    cert_type, size = struct.unpack_from("<HI", data, 0)
    remaining = len(data) - CERT_DATA_HEADER_SIZE
    if remaining != size:
        raise QuoteParseError(
            f"certification data size mismatch: declared {size} bytes, "
            f"but {remaining} bytes remain after header"
        )
    return cert_type, data[CERT_DATA_HEADER_SIZE:]


def _parse_qe_report_certification_data(data: bytes) -> QeReportCertificationData:
    offset = 0
    if len(data) < QE_REPORT_SIZE + SIGNATURE_SIZE + 2:
        raise QuoteParseError("QE report certification data too short")

    qe_report = data[offset:offset + QE_REPORT_SIZE]
    offset += QE_REPORT_SIZE
    qe_report_signature = data[offset:offset + SIGNATURE_SIZE]
    offset += SIGNATURE_SIZE

    (auth_size,) = struct.unpack_from("<H", data, offset)
    offset += 2
    if len(data) < offset + auth_size:
        raise QuoteParseError("data too short for QE auth data")
    qe_auth_data = data[offset:offset + auth_size]
    offset += auth_size

    nested_type, pck_chain = _read_cert_data(data[offset:])
    if nested_type != CERT_DATA_TYPE_PCK_CERT_CHAIN:
        raise QuoteParseError(
            f"expected PCK cert chain type {CERT_DATA_TYPE_PCK_CERT_CHAIN}, got {nested_type}"
        )

    return QeReportCertificationData(
        qe_report=qe_report,
        qe_report_signature=qe_report_signature,
        qe_auth_data=qe_auth_data,
        pck_cert_chain=pck_chain,
    )
