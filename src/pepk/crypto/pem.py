"""PEM text encoding for DER objects."""
from __future__ import annotations

import base64
from typing import Literal

PemLabel = Literal["PRIVATE KEY", "CERTIFICATE"]

PEM_LINE_LENGTH = 64
PEM_LABELS: tuple[str, ...] = ("PRIVATE KEY", "CERTIFICATE")


def to_pem(der_bytes: bytes, label: PemLabel) -> bytes:
    """Encode ``der_bytes`` as an ASCII PEM block.

    Base64 is standard alphabet with padding, wrapped at exactly 64
    characters per line, and the block ends with a single newline after the
    footer. The output must stay byte-compatible with OpenSSL readers.
    """

    if label not in PEM_LABELS:
        raise ValueError(f"Unsupported PEM label: {label!r}")

    encoded = base64.b64encode(der_bytes).decode("ascii")
    lines = [encoded[i : i + PEM_LINE_LENGTH] for i in range(0, len(encoded), PEM_LINE_LENGTH)]
    pem_lines = [f"-----BEGIN {label}-----", *lines, f"-----END {label}-----"]
    return ("\n".join(pem_lines) + "\n").encode("ascii")


def private_key_to_pem(der_bytes: bytes) -> bytes:
    return to_pem(der_bytes, "PRIVATE KEY")


def certificate_to_pem(der_bytes: bytes) -> bytes:
    return to_pem(der_bytes, "CERTIFICATE")
