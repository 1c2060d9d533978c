"""CKM_RSA_AES_KEY_WRAP style encryption of private key bytes.

Layout of the output::

    RSA-OAEP(SHA-1, MGF1-SHA-1)(aes_key) || AES-KWP(aes_key, payload)

There is no length prefix; a decryptor splits at the RSA modulus size of the
wrapping key. SHA-1 in OAEP is kept for compatibility with the existing
importer and is weaker than current practice.
"""
from __future__ import annotations

import logging

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.keywrap import aes_key_wrap_with_padding

from pepk.crypto.backend import CryptoBackend, default_backend
from pepk.errors import EncryptionError, KeyFormatError

logger = logging.getLogger(__name__)

AES_KEY_LEN = 32
_PEM_PREFIX = b"-----BEGIN"


def oaep_sha1_padding() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA1()),
        algorithm=hashes.SHA1(),
        label=None,
    )


def load_wrapping_public_key(key_bytes: bytes) -> rsa.RSAPublicKey:
    """Parse an RSA SubjectPublicKeyInfo given as PEM or DER bytes."""

    try:
        if key_bytes.lstrip().startswith(_PEM_PREFIX):
            public_key = serialization.load_pem_public_key(key_bytes)
        else:
            public_key = serialization.load_der_public_key(key_bytes)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyFormatError(f"Unable to parse wrapping public key: {exc}") from exc

    if not isinstance(public_key, rsa.RSAPublicKey):
        raise KeyFormatError(
            f"Wrapping key must be an RSA public key, got {type(public_key).__name__}"
        )
    return public_key


class KeyWrapEncryptor:
    """Wraps a payload under a fresh AES-256 key that is itself RSA-OAEP wrapped."""

    def __init__(self, backend: CryptoBackend | None = None) -> None:
        self.backend = backend or default_backend()

    def encrypt(self, wrapping_public_key: rsa.RSAPublicKey | bytes, payload: bytes) -> bytes:
        if isinstance(wrapping_public_key, (bytes, bytearray)):
            wrapping_public_key = load_wrapping_public_key(bytes(wrapping_public_key))
        if not payload:
            # RFC 5649 needs a message length indicator of at least one octet.
            raise EncryptionError("Refusing to wrap an empty payload")

        aes_key = self.backend.random_bytes(AES_KEY_LEN)
        try:
            wrapped_aes_key = wrapping_public_key.encrypt(aes_key, oaep_sha1_padding())
        except ValueError as exc:
            raise EncryptionError(f"RSA-OAEP encryption of the AES key failed: {exc}") from exc

        try:
            wrapped_payload = aes_key_wrap_with_padding(aes_key, payload)
        except ValueError as exc:
            raise EncryptionError(f"AES key wrap of the payload failed: {exc}") from exc

        logger.debug(
            "Wrapped %d payload bytes (rsa block %d bytes, kwp block %d bytes)",
            len(payload),
            len(wrapped_aes_key),
            len(wrapped_payload),
        )
        return wrapped_aes_key + wrapped_payload
