"""Detached SHA512with<RSA|DSA> signatures over the encrypted payload."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import dsa, padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from pepk.crypto.backend import CryptoBackend, default_backend
from pepk.errors import SigningError, UnsupportedAlgorithmError

logger = logging.getLogger(__name__)

# Legacy policy of the importer, not a statement about what the library can do.
SUPPORTED_SIGNING_ALGORITHMS: tuple[str, ...] = ("RSA", "DSA")


@dataclass(frozen=True)
class Signature:
    value: bytes
    algorithm: str


def signature_algorithm_name(key_algorithm: str) -> str:
    return f"SHA512with{key_algorithm}"


class Signer:
    """Produces detached signatures with keys from the allowed algorithms."""

    def __init__(self, backend: CryptoBackend | None = None) -> None:
        self.backend = backend or default_backend()

    def sign(self, payload: bytes, signing_private_key: PrivateKeyTypes, key_algorithm: str) -> Signature:
        if key_algorithm not in SUPPORTED_SIGNING_ALGORITHMS:
            raise UnsupportedAlgorithmError(
                f"The signing key uses an unsupported algorithm ({key_algorithm}). "
                f"Only {', '.join(SUPPORTED_SIGNING_ALGORITHMS)} are supported."
            )

        algorithm = signature_algorithm_name(key_algorithm)
        try:
            if key_algorithm == "RSA":
                if not isinstance(signing_private_key, rsa.RSAPrivateKey):
                    raise SigningError(f"{algorithm} requires an RSA private key")
                value = signing_private_key.sign(payload, padding.PKCS1v15(), hashes.SHA512())
            else:
                if not isinstance(signing_private_key, dsa.DSAPrivateKey):
                    raise SigningError(f"{algorithm} requires a DSA private key")
                value = signing_private_key.sign(payload, hashes.SHA512())
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningError(f"{algorithm} signing failed: {exc}") from exc

        logger.debug("Signed %d bytes with %s", len(payload), algorithm)
        return Signature(value=value, algorithm=algorithm)
