"""Explicit crypto backend handle shared by the export components."""
from __future__ import annotations

import os
from typing import Callable

RandomSource = Callable[[int], bytes]


class CryptoBackend:
    """Per-run handle for cryptographic services.

    Components receive the backend in their constructor instead of relying on
    process-wide provider registration. The only service it owns today is the
    random source, which must be a CSPRNG; ``os.urandom`` is the default.
    """

    def __init__(self, random_source: RandomSource | None = None) -> None:
        self._random_source = random_source or os.urandom

    def random_bytes(self, length: int) -> bytes:
        if length <= 0:
            raise ValueError(f"Random length must be positive, got {length}")
        data = self._random_source(length)
        if len(data) != length:
            raise ValueError(f"Random source returned {len(data)} bytes, expected {length}")
        return data


def default_backend() -> CryptoBackend:
    return CryptoBackend()
