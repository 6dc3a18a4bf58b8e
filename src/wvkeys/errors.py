"""
Error types raised by the key source.

Every failure below the key source facade is raised as one of these types and
propagated unchanged to the caller of ``WidevineKeySource.get_key``. Only
``ServerTransientError`` is ever retried, and only inside the retry
controller's own bounded loop.
"""

from __future__ import annotations

from typing import Optional


class KeySourceError(Exception):
    """Base class for all key source failures."""


class InvalidArgumentError(KeySourceError, ValueError):
    """Malformed input to request construction or configuration."""


class SigningFailedError(KeySourceError):
    """The request signer could not produce a signature."""


class TransportError(KeySourceError):
    """Network, timeout or HTTP status failure reported by the transport."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(KeySourceError):
    """Malformed response envelope, JSON text or base64 field."""


class LicenseParseError(DecodeError):
    """License body does not have the expected structure."""


class ServerRejectedError(KeySourceError):
    """License server reported a permanent, non-OK status."""

    def __init__(self, message: str, status: str):
        super().__init__(message)
        self.status = status


class ServerTransientError(KeySourceError):
    """License server kept reporting a transient error until retries ran out."""

    def __init__(self, message: str, status: str, attempts: int):
        super().__init__(message)
        self.status = status
        self.attempts = attempts


class ExtractionFailedError(KeySourceError):
    """Track data in an OK response is malformed or inconsistent."""


class DuplicateTrackError(ExtractionFailedError):
    """The same track type appears more than once in a response."""


class IncompleteTracksError(ExtractionFailedError):
    """A response is missing keys for one or more required track types."""


class KeyNotFoundError(KeySourceError):
    """A fetched key map has no entry for the requested track type."""
