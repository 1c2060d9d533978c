"""Export pipeline: load key, encrypt, optionally sign, write output."""
from __future__ import annotations

import enum
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from pepk.crypto.backend import CryptoBackend
from pepk.crypto.hybrid import HybridEncryptionAdapter, HybridEncryptionService
from pepk.crypto.keywrap import KeyWrapEncryptor
from pepk.crypto.pem import certificate_to_pem
from pepk.crypto.signer import Signature, Signer
from pepk.errors import KeyFormatError, KeyRetrievalError, OutputWriteError, PepkError
from pepk.export.archive import ArchiveBuilder
from pepk.keystore import KeystoreEntry, KeystoreKey, KeystoreProvider, Pkcs12KeystoreProvider

logger = logging.getLogger(__name__)

STAGE_LOAD_KEY = "load-key"
STAGE_ENCRYPT = "encrypt"
STAGE_SIGN = "sign"
STAGE_FETCH_CERTIFICATE = "fetch-certificate"
STAGE_WRITE_OUTPUT = "write-output"


class EncryptionMode(enum.Enum):
    HYBRID_EC = "hybrid-ec"
    RSA_AES_KEY_WRAP = "rsa-aes-key-wrap"


@dataclass(frozen=True)
class ExportRequest:
    """Everything one export run needs.

    ``encryption_key`` is the RSA public key (PEM or DER bytes) for
    :attr:`EncryptionMode.RSA_AES_KEY_WRAP`, or the hex encoded recipient key
    for :attr:`EncryptionMode.HYBRID_EC`.
    """

    key_to_export: KeystoreKey
    mode: EncryptionMode
    encryption_key: Union[bytes, str]
    output: Path
    signing_key: Optional[KeystoreKey] = None
    include_certificate: bool = False

    @property
    def wants_certificate(self) -> bool:
        return self.signing_key is not None or self.include_certificate


@dataclass(frozen=True)
class ExportResult:
    output: Path
    encrypted_key: bytes
    signature: Optional[Signature]
    certificate_pem: Optional[bytes]

    @property
    def is_archive(self) -> bool:
        return self.signature is not None or self.certificate_pem is not None


@contextmanager
def _stage(name: str) -> Iterator[None]:
    logger.debug("Stage %s started", name)
    try:
        yield
    except PepkError as exc:
        if exc.stage is None:
            exc.stage = name
        logger.debug("Stage %s failed: %s", name, exc)
        raise


class ExportPipeline:
    """Runs ``Start -> KeyLoaded -> Encrypted -> [Signed] -> [Certificate] -> Written``.

    Every failure aborts the run; nothing is retried and no output is left
    behind. Collaborators can be injected for testing or to swap the keystore
    format or hybrid encryption service.
    """

    def __init__(
        self,
        keystore_provider: Optional[KeystoreProvider] = None,
        backend: Optional[CryptoBackend] = None,
        hybrid_service: Optional[HybridEncryptionService] = None,
    ) -> None:
        self.backend = backend or CryptoBackend()
        self.keystore_provider = keystore_provider or Pkcs12KeystoreProvider()
        self.key_wrap_encryptor = KeyWrapEncryptor(self.backend)
        self.hybrid_adapter = HybridEncryptionAdapter(hybrid_service, self.backend)
        self.signer = Signer(self.backend)
        self.archive_builder = ArchiveBuilder()

    def run(self, request: ExportRequest) -> ExportResult:
        output = Path(request.output)
        logger.info(
            "Exporting alias '%s' from %s (%s)",
            request.key_to_export.alias,
            request.key_to_export.path,
            request.mode.value,
        )

        with _stage(STAGE_LOAD_KEY):
            entry = self._load(request.key_to_export)

        with _stage(STAGE_ENCRYPT):
            encrypted_key = self.encrypt(request.mode, request.encryption_key, entry)

        signature: Optional[Signature] = None
        if request.signing_key is not None:
            with _stage(STAGE_SIGN):
                signing_entry = self._load(request.signing_key)
                signature = self.signer.sign(
                    encrypted_key, signing_entry.private_key, signing_entry.key_algorithm
                )

        certificate_pem: Optional[bytes] = None
        if request.wants_certificate:
            with _stage(STAGE_FETCH_CERTIFICATE):
                certificate_pem = certificate_to_pem(entry.certificate_der())

        with _stage(STAGE_WRITE_OUTPUT):
            try:
                self.archive_builder.build(
                    output,
                    encrypted_key,
                    signature=signature.value if signature is not None else None,
                    certificate_pem=certificate_pem,
                )
            except PepkError:
                raise
            except OSError as exc:
                raise OutputWriteError(f"Unable to write {output}: {exc}") from exc

        logger.info("Export of alias '%s' written to %s", request.key_to_export.alias, output)
        return ExportResult(
            output=output,
            encrypted_key=encrypted_key,
            signature=signature,
            certificate_pem=certificate_pem,
        )

    def encrypt(
        self, mode: EncryptionMode, encryption_key: Union[bytes, str], entry: KeystoreEntry
    ) -> bytes:
        private_key_der = entry.private_key_der()
        if mode is EncryptionMode.RSA_AES_KEY_WRAP:
            if isinstance(encryption_key, str):
                raise KeyFormatError("RSA wrapping key must be given as PEM or DER bytes")
            return self.key_wrap_encryptor.encrypt(encryption_key, private_key_der)
        return self.hybrid_adapter.encrypt(encryption_key, private_key_der)

    def _load(self, key: KeystoreKey) -> KeystoreEntry:
        try:
            return self.keystore_provider.load(key)
        except PepkError:
            raise
        except (OSError, ValueError) as exc:
            raise KeyRetrievalError(f"Unable to load alias '{key.alias}' from {key.path}: {exc}") from exc
