"""Public export API re-exported for external users."""
from __future__ import annotations

from pepk.export.archive import (
    CERTIFICATE_ENTRY,
    ENCRYPTED_KEY_ENTRY,
    SIGNATURE_ENTRY,
    ArchiveBuilder,
)
from pepk.export.pipeline import (
    EncryptionMode,
    ExportPipeline,
    ExportRequest,
    ExportResult,
)

__all__ = [
    "ArchiveBuilder",
    "CERTIFICATE_ENTRY",
    "ENCRYPTED_KEY_ENTRY",
    "EncryptionMode",
    "ExportPipeline",
    "ExportRequest",
    "ExportResult",
    "SIGNATURE_ENTRY",
]
