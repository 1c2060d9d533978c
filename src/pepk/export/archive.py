"""Output writer: bare ciphertext or a zip archive of fixed entries."""
from __future__ import annotations

import io
import logging
import os
import zipfile
from pathlib import Path
from typing import Optional

from pepk.errors import OutputAlreadyExistsError

logger = logging.getLogger(__name__)

SIGNATURE_ENTRY = "encryptedPrivateKeySignature"
ENCRYPTED_KEY_ENTRY = "encryptedPrivateKey"
CERTIFICATE_ENTRY = "certificate.pem"


def build_archive_bytes(
    signature: Optional[bytes],
    payload: bytes,
    certificate_pem: Optional[bytes],
) -> bytes:
    """Serialize the archive entries, in their fixed order, to zip bytes."""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
        if signature is not None:
            archive.writestr(SIGNATURE_ENTRY, signature)
        archive.writestr(ENCRYPTED_KEY_ENTRY, payload)
        if certificate_pem is not None:
            archive.writestr(CERTIFICATE_ENTRY, certificate_pem)
    return buffer.getvalue()


def _write_new_file(path: Path, data: bytes) -> None:
    # "x" mode is the only synchronization point between concurrent exports.
    try:
        handle = path.open("xb")
    except FileExistsError as exc:
        raise OutputAlreadyExistsError(f"Refusing to overwrite existing file: {path}") from exc
    try:
        with handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
    except BaseException:
        path.unlink(missing_ok=True)
        raise


class ArchiveBuilder:
    """Commits the export result to a destination that must not exist yet.

    Without a signature or certificate the payload is written as is;
    otherwise a zip archive holding ``encryptedPrivateKeySignature`` (if
    signed), ``encryptedPrivateKey`` and ``certificate.pem`` (if requested)
    is written. Everything is assembled in memory first, so a failure never
    leaves a partial file behind.
    """

    def build(
        self,
        destination: Path,
        payload: bytes,
        *,
        signature: Optional[bytes] = None,
        certificate_pem: Optional[bytes] = None,
    ) -> Path:
        destination = Path(destination)
        if destination.exists():
            raise OutputAlreadyExistsError(f"Refusing to overwrite existing file: {destination}")

        if signature is None and certificate_pem is None:
            data = payload
            logger.info("Writing bare encrypted key (%d bytes) to %s", len(data), destination)
        else:
            data = build_archive_bytes(signature, payload, certificate_pem)
            logger.info(
                "Writing archive (signature=%s, certificate=%s) to %s",
                signature is not None,
                certificate_pem is not None,
                destination,
            )
        _write_new_file(destination, data)
        return destination
