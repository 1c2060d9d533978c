"""Hybrid (ECIES style) encryption of PEM encoded private keys.

The export pipeline treats hybrid encryption as an external service: anything
with ``encrypt(recipient_key, plaintext) -> bytes`` can be plugged into
:class:`HybridEncryptionAdapter`. :class:`EciesP256Service` is the service used
when none is supplied.

``EciesP256Service`` ciphertext layout::

    ephemeral point (65, uncompressed SEC1) || nonce (12) || AES-128-GCM(ct || tag)

with the AES key derived by HKDF-SHA256 over the ECDH shared secret, salted
with the ephemeral point.
"""
from __future__ import annotations

import binascii
import logging
from typing import Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from pepk.crypto.backend import CryptoBackend, default_backend
from pepk.crypto.pem import private_key_to_pem
from pepk.errors import EncryptionError, InputFormatError, KeyFormatError

logger = logging.getLogger(__name__)

POINT_LEN = 65
NONCE_LEN = 12
AES_KEY_LEN = 16
# Domain-separation label for the HKDF step.
_HKDF_INFO = b"pepk hybrid encryption"


@runtime_checkable
class HybridEncryptionService(Protocol):
    def encrypt(self, recipient_key: bytes, plaintext: bytes) -> bytes: ...


def from_hex(value: str) -> bytes:
    """Decode a hex encoded key, rejecting odd lengths explicitly."""

    if len(value) % 2 != 0:
        raise InputFormatError(
            "Hex encoded byte array must have even length but instead has length: "
            f"{len(value)}"
        )
    try:
        return binascii.unhexlify(value)
    except (binascii.Error, ValueError) as exc:
        raise InputFormatError(f"Invalid hex encoded key: {exc}") from exc


def _derive_key(shared_secret: bytes, ephemeral_point: bytes) -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=AES_KEY_LEN,
        salt=ephemeral_point,
        info=_HKDF_INFO,
    )
    return hkdf.derive(shared_secret)


def _load_recipient_key(recipient_key: bytes) -> ec.EllipticCurvePublicKey:
    if len(recipient_key) != POINT_LEN:
        raise KeyFormatError(
            f"Recipient key must be a {POINT_LEN}-byte uncompressed P-256 point, "
            f"got {len(recipient_key)} bytes"
        )
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), recipient_key)
    except ValueError as exc:
        raise KeyFormatError(f"Recipient key is not a valid P-256 point: {exc}") from exc


class EciesP256Service:
    """Ephemeral ECDH on P-256, HKDF-SHA256 and AES-128-GCM."""

    def __init__(self, backend: CryptoBackend | None = None) -> None:
        self.backend = backend or default_backend()

    def encrypt(self, recipient_key: bytes, plaintext: bytes) -> bytes:
        public_key = _load_recipient_key(recipient_key)
        ephemeral = ec.generate_private_key(ec.SECP256R1())
        ephemeral_point = ephemeral.public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.UncompressedPoint,
        )
        shared_secret = ephemeral.exchange(ec.ECDH(), public_key)
        key = _derive_key(shared_secret, ephemeral_point)
        nonce = self.backend.random_bytes(NONCE_LEN)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
        return ephemeral_point + nonce + ciphertext

    @staticmethod
    def decrypt(private_key: ec.EllipticCurvePrivateKey, ciphertext: bytes) -> bytes:
        """Reverse :meth:`encrypt`; used to verify exported artifacts."""

        if len(ciphertext) < POINT_LEN + NONCE_LEN + 16:
            raise EncryptionError("Hybrid ciphertext is too short")
        ephemeral_point = ciphertext[:POINT_LEN]
        nonce = ciphertext[POINT_LEN : POINT_LEN + NONCE_LEN]
        body = ciphertext[POINT_LEN + NONCE_LEN :]
        try:
            ephemeral = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), ephemeral_point)
        except ValueError as exc:
            raise EncryptionError("Hybrid ciphertext has an invalid ephemeral point") from exc
        shared_secret = private_key.exchange(ec.ECDH(), ephemeral)
        key = _derive_key(shared_secret, ephemeral_point)
        try:
            return AESGCM(key).decrypt(nonce, body, None)
        except InvalidTag as exc:
            raise EncryptionError("Hybrid ciphertext failed authentication") from exc


class HybridEncryptionAdapter:
    """PEM encodes a private key and hands it to a hybrid encryption service."""

    def __init__(
        self,
        service: HybridEncryptionService | None = None,
        backend: CryptoBackend | None = None,
    ) -> None:
        self.backend = backend or default_backend()
        self.service = service or EciesP256Service(self.backend)

    def encrypt(self, recipient_key: bytes | str, private_key_der: bytes) -> bytes:
        if isinstance(recipient_key, str):
            recipient_key = from_hex(recipient_key)
        pem = private_key_to_pem(private_key_der)
        try:
            ciphertext = self.service.encrypt(recipient_key, pem)
        except ValueError as exc:
            raise EncryptionError(f"Hybrid encryption failed: {exc}") from exc
        logger.debug("Hybrid encrypted %d PEM bytes into %d bytes", len(pem), len(ciphertext))
        return ciphertext
