"""
HTTP transport for license requests.

The key source only needs ``post``; ``get`` is provided for callers that
fetch other resources from the same server. Any failure, including a non-2xx
status, is raised as ``TransportError`` so the core never looks at HTTP
status codes itself.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

from ..errors import TransportError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


class HttpFetcher(Protocol):
    def get(self, url: str) -> bytes: ...

    def post(self, url: str, data: bytes) -> bytes: ...


class SimpleHttpFetcher:
    """``requests`` based fetcher with a per-call timeout.

    A session created here is closed by ``close()`` or on leaving a ``with``
    block; a caller-supplied session is left to its owner.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None):
        """Initialize fetcher.

        Args:
            timeout: Seconds to wait for connect and for each read
            session: Session to reuse; a new one is created when omitted
        """
        self.timeout = timeout
        self._owns_session = session is None
        self.session = requests.Session() if session is None else session

    def __enter__(self) -> SimpleHttpFetcher:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def get(self, url: str) -> bytes:
        return self._fetch("GET", url, None)

    def post(self, url: str, data: bytes) -> bytes:
        return self._fetch("POST", url, data)

    def _fetch(self, method: str, url: str, data: Optional[bytes]) -> bytes:
        LOGGER.debug("%s %s (%d bytes)", method, url, len(data or b""))
        try:
            response = self.session.request(
                method,
                url,
                data=data,
                headers={"Content-Type": "application/json"} if data is not None else None,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransportError(f"Timed out fetching {url}: {e}") from e
        except requests.RequestException as e:
            raise TransportError(f"Failed to fetch {url}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"HTTP {response.status_code} from {url}: {response.reason}",
                status_code=response.status_code,
            )
        return response.content
