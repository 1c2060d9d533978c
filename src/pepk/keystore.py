"""Keystore lookup descriptors and the PKCS#12 keystore provider."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from pepk.errors import KeyRetrievalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeystoreKey:
    """Where to find a private key. Not a secret container itself."""

    path: Path
    alias: str
    store_password: Optional[str] = field(default=None, repr=False)
    key_password: Optional[str] = field(default=None, repr=False)

    def resolved_store_password(self) -> Optional[str]:
        return self.store_password if self.store_password is not None else self.key_password

    def resolved_key_password(self) -> Optional[str]:
        return self.key_password if self.key_password is not None else self.store_password


@dataclass(frozen=True)
class KeystoreEntry:
    private_key: object
    certificate: Optional[x509.Certificate]

    @property
    def key_algorithm(self) -> str:
        return key_algorithm_name(self.private_key)

    def private_key_der(self) -> bytes:
        """PKCS#8 DER encoding of the private key."""

        return self.private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def certificate_der(self) -> bytes:
        if self.certificate is None:
            raise KeyRetrievalError("Keystore entry has no certificate")
        return self.certificate.public_bytes(serialization.Encoding.DER)


def key_algorithm_name(private_key: object) -> str:
    """Return the JCA style algorithm name of a private key."""

    if isinstance(private_key, rsa.RSAPrivateKey):
        return "RSA"
    if isinstance(private_key, dsa.DSAPrivateKey):
        return "DSA"
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return "EC"
    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        return "Ed25519"
    if isinstance(private_key, ed448.Ed448PrivateKey):
        return "Ed448"
    return type(private_key).__name__


@runtime_checkable
class KeystoreProvider(Protocol):
    def load(self, key: KeystoreKey) -> KeystoreEntry: ...


class Pkcs12KeystoreProvider:
    """Reads key entries from PKCS#12 keystores (``.p12``/``.pfx``/``.keystore``).

    The alias is matched case-insensitively against the friendly name of the
    key entry's certificate, as Java's PKCS12 keystore does. An entry without
    a friendly name (or without a certificate to carry one) matches no alias.
    Only the first private key of the file is visible, so a keystore holding
    several key entries can only supply that one; other aliases fail as not
    found. PKCS#12 protects entries with the store password, so a differing
    key password cannot unlock anything and is rejected up front.
    """

    def load(self, key: KeystoreKey) -> KeystoreEntry:
        path = Path(key.path)
        if not path.is_file():
            raise KeyRetrievalError(f"Keystore not found: {path}")

        store_password = key.resolved_store_password()
        key_password = key.resolved_key_password()
        if key_password != store_password:
            raise KeyRetrievalError(
                f"Key password for alias '{key.alias}' differs from the store password; "
                "PKCS#12 keystores protect entries with the store password"
            )

        try:
            bundle = pkcs12.load_pkcs12(
                path.read_bytes(),
                store_password.encode("utf-8") if store_password is not None else None,
            )
        except (ValueError, TypeError) as exc:
            raise KeyRetrievalError(
                f"Unable to open keystore {path} (wrong password or corrupt file)"
            ) from exc
        except OSError as exc:
            raise KeyRetrievalError(f"Unable to read keystore {path}: {exc}") from exc

        if bundle.key is None:
            raise KeyRetrievalError(f"Keystore {path} holds no private key entry")

        certificate = bundle.cert.certificate if bundle.cert is not None else None
        friendly_name = bundle.cert.friendly_name if bundle.cert is not None else None
        entry_alias = friendly_name.decode("utf-8", errors="replace") if friendly_name is not None else None
        if entry_alias is None or entry_alias.lower() != key.alias.lower():
            raise KeyRetrievalError(f"Alias '{key.alias}' not found in keystore {path}")

        logger.debug("Loaded key entry '%s' from %s", key.alias, path)
        return KeystoreEntry(private_key=bundle.key, certificate=certificate)
