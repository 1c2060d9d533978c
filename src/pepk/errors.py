"""Custom exceptions for PEPK."""

from __future__ import annotations


class PepkError(Exception):
    """Base exception for PEPK.

    ``stage`` names the export step that failed. The pipeline fills it in
    when the error passes through, so an operator can tell which step broke
    without re-running the export.
    """

    def __init__(self, message: str = "", *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class KeyRetrievalError(PepkError):
    """Keystore, alias or password could not produce the requested key."""


class KeyFormatError(PepkError):
    """Caller-supplied key material is malformed or of the wrong type."""


class InputFormatError(PepkError):
    """Caller-supplied input (e.g. a hex string) cannot be decoded."""


class UnsupportedAlgorithmError(PepkError):
    """Signing key algorithm is outside the allowed set."""


class EncryptionError(PepkError):
    """Underlying encryption primitive failed."""


class SigningError(PepkError):
    """Underlying signature primitive failed."""


class OutputAlreadyExistsError(PepkError, FileExistsError):
    """Destination path already exists and will not be overwritten."""


class OutputWriteError(PepkError, OSError):
    """Destination could not be created or written."""
