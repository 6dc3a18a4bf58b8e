"""
Widevine key source.

Fetches the content keys for one content ID from a Widevine license server
the first time any track's key is requested, then serves every later lookup
from memory.

Workflow:
    1. Build the license request for the content ID
    2. Sign it and wrap it in the signed request envelope
    3. Post it, retrying while the server reports a transient error
    4. Extract one key per track type and cache the map
"""

from __future__ import annotations

import logging
import threading
import time
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from ..encryption.signers import RequestSigner
from ..errors import InvalidArgumentError, KeyNotFoundError, SigningFailedError
from ..transport.http_fetcher import HttpFetcher, SimpleHttpFetcher
from .codec import build_request, wrap_signed
from .extractor import extract_encryption_keys
from .retry import RetryController, RetryPolicy
from .types import EncryptionKey, KeyMap, TrackType

LOGGER = logging.getLogger(__name__)


class WidevineKeySource:
    """Thread-safe, fetch-once source of per-track encryption keys."""

    def __init__(self, server_url: str, content_id: bytes, signer: RequestSigner,
                 http_fetcher: Optional[HttpFetcher] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize key source.

        Args:
            server_url: License server URL
            content_id: Content identifier sent to the server
            signer: Signer for license requests
            http_fetcher: Transport; a SimpleHttpFetcher when omitted
            retry_policy: Transient error retry policy
            sleep: Called with seconds to wait between retries
        """
        if signer is None:
            raise InvalidArgumentError("A request signer is required")
        self.server_url = server_url
        self.content_id = content_id
        self.signer = signer
        self.http_fetcher = http_fetcher or SimpleHttpFetcher()
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._lock = threading.Lock()
        self._keys: Mapping[TrackType, EncryptionKey] = MappingProxyType({})
        self._fetched = False

    @property
    def fetched(self) -> bool:
        return self._fetched

    def set_http_fetcher(self, http_fetcher: HttpFetcher) -> None:
        self.http_fetcher = http_fetcher

    def get_key(self, track_type: TrackType) -> EncryptionKey:
        """Return the key for a track type, fetching all keys on first use.

        A failed fetch is not cached; the next call tries again.

        Raises:
            InvalidArgumentError: track_type is not SD, HD or AUDIO
            KeySourceError: Fetching the keys failed
            KeyNotFoundError: The fetched keys have no entry for track_type
        """
        if not isinstance(track_type, TrackType) or track_type is TrackType.UNKNOWN:
            raise InvalidArgumentError(f"Invalid track type: {track_type!r}")

        if not self._fetched:
            with self._lock:
                if not self._fetched:
                    self._keys = MappingProxyType(self.fetch_keys())
                    self._fetched = True

        try:
            return self._keys[track_type]
        except KeyError:
            raise KeyNotFoundError(f"Cannot find key of type {track_type}") from None

    def fetch_keys(self) -> KeyMap:
        """Run one complete request/response exchange and return the new key map."""
        request = build_request(self.content_id)
        LOGGER.info("Fetching keys for content %s from %s", self.content_id.hex(), self.server_url)
        message = self.sign_request(request)
        LOGGER.debug("Signed request: %d bytes", len(message))

        controller = RetryController(
            self.http_fetcher, self.server_url, self.retry_policy, sleep=self._sleep
        )
        response = controller.run(message)
        keys = extract_encryption_keys(response.tracks)
        LOGGER.info("Fetched keys for %s", ", ".join(str(t) for t in keys))
        return keys

    def sign_request(self, request: bytes) -> bytes:
        """Sign a request and wrap it in the signed request envelope.

        Raises:
            SigningFailedError: The signer failed or produced no signature
        """
        try:
            signature = self.signer.generate_signature(request)
        except Exception as e:
            raise SigningFailedError(f"Signature generation failed: {e}") from e
        if not signature:
            raise SigningFailedError("Signature generation failed.")
        return wrap_signed(request, signature, self.signer.signer_name)
