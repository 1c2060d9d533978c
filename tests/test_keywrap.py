"""Tests for RSA-OAEP + AES key wrap encryption."""
from __future__ import annotations

import os

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.keywrap import aes_key_unwrap_with_padding

from pepk.crypto.backend import CryptoBackend
from pepk.crypto.keywrap import AES_KEY_LEN, KeyWrapEncryptor, load_wrapping_public_key, oaep_sha1_padding
from pepk.errors import EncryptionError, KeyFormatError


def _unwrap(wrapping_key, ciphertext: bytes) -> tuple[bytes, bytes]:
    split = wrapping_key.key_size // 8
    aes_key = wrapping_key.decrypt(ciphertext[:split], oaep_sha1_padding())
    return aes_key, aes_key_unwrap_with_padding(aes_key, ciphertext[split:])


# No zero-length case: RFC 5649 needs at least one octet, see
# test_empty_payload_is_rejected.
@pytest.mark.parametrize("size", [1, 15, 16, 17, 1000])
def test_round_trip(wrapping_key, wrapping_public_pem: bytes, size: int) -> None:
    payload = os.urandom(size)
    ciphertext = KeyWrapEncryptor().encrypt(wrapping_public_pem, payload)

    aes_key, recovered = _unwrap(wrapping_key, ciphertext)
    assert len(aes_key) == AES_KEY_LEN
    assert recovered == payload


def test_empty_payload_is_rejected(wrapping_public_pem: bytes) -> None:
    with pytest.raises(EncryptionError):
        KeyWrapEncryptor().encrypt(wrapping_public_pem, b"")


def test_fresh_aes_key_per_call(wrapping_key, wrapping_public_pem: bytes) -> None:
    encryptor = KeyWrapEncryptor()
    payload = b"same payload every time"
    first = encryptor.encrypt(wrapping_public_pem, payload)
    second = encryptor.encrypt(wrapping_public_pem, payload)

    assert first != second
    assert _unwrap(wrapping_key, first)[0] != _unwrap(wrapping_key, second)[0]


def test_aes_key_comes_from_backend(wrapping_key, wrapping_public_pem: bytes) -> None:
    requested: list[int] = []

    def _source(length: int) -> bytes:
        requested.append(length)
        return b"\x11" * length

    ciphertext = KeyWrapEncryptor(CryptoBackend(_source)).encrypt(wrapping_public_pem, b"payload")
    assert requested == [AES_KEY_LEN]
    assert _unwrap(wrapping_key, ciphertext)[0] == b"\x11" * AES_KEY_LEN


def test_accepts_der_and_key_objects(wrapping_key) -> None:
    public_key = wrapping_key.public_key()
    der = public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    encryptor = KeyWrapEncryptor()
    assert _unwrap(wrapping_key, encryptor.encrypt(der, b"der"))[1] == b"der"
    assert _unwrap(wrapping_key, encryptor.encrypt(public_key, b"obj"))[1] == b"obj"


def test_malformed_public_key() -> None:
    with pytest.raises(KeyFormatError):
        load_wrapping_public_key(b"-----BEGIN PUBLIC KEY-----\nnot base64\n-----END PUBLIC KEY-----\n")
    with pytest.raises(KeyFormatError):
        KeyWrapEncryptor().encrypt(b"\x30\x03garbage", b"payload")


def test_non_rsa_public_key_rejected(ec_key) -> None:
    pem = ec_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    with pytest.raises(KeyFormatError):
        load_wrapping_public_key(pem)
