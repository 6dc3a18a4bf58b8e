"""
Retry loop around the license server round trip.

Only the server's transient INTERNAL_ERROR status is retried. Transport
errors are left to the transport layer, and malformed responses or
permanent statuses will not fix themselves, so all of those abort the loop
immediately.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator

from ..errors import ServerRejectedError, ServerTransientError
from ..transport.http_fetcher import HttpFetcher
from .classifier import Outcome, classify
from .codec import decode_response_envelope, parse_license_body
from .types import LicenseResponse

LOGGER = logging.getLogger(__name__)

NUM_TRANSIENT_ERROR_RETRIES = 5
FIRST_RETRY_DELAY_MS = 1000


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with no jitter.

    Attributes:
        max_attempts: Total number of requests, including the first
        first_delay_ms: Delay before the second request; doubled after each retry
    """

    max_attempts: int = NUM_TRANSIENT_ERROR_RETRIES
    first_delay_ms: int = FIRST_RETRY_DELAY_MS

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.first_delay_ms < 0:
            raise ValueError(f"first_delay_ms must not be negative, got {self.first_delay_ms}")

    def delays(self) -> Iterator[int]:
        """Yield the sleep before each retry, in milliseconds."""
        delay = self.first_delay_ms
        for _ in range(self.max_attempts - 1):
            yield delay
            delay *= 2


class RetryController:
    """Posts a signed request until the server answers with a usable status."""

    def __init__(self, fetcher: HttpFetcher, server_url: str,
                 policy: RetryPolicy | None = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.fetcher = fetcher
        self.server_url = server_url
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def run(self, message: bytes) -> LicenseResponse:
        """Send ``message`` and return the first OK license response.

        Raises:
            TransportError: Transport failed; not retried here
            DecodeError: Response envelope or license body was malformed
            ServerRejectedError: Server returned a permanent error status
            ServerTransientError: Server kept returning INTERNAL_ERROR
        """
        delays = self.policy.delays()
        last_status = ""
        for attempt in range(1, self.policy.max_attempts + 1):
            raw_response = self.fetcher.post(self.server_url, message)
            license_body = decode_response_envelope(raw_response)
            result = classify(parse_license_body(license_body))
            LOGGER.debug(
                "Attempt %d: %d bytes, status %s",
                attempt, len(raw_response), result.response.status,
            )

            if result.outcome is Outcome.SUCCESS:
                return result.response
            if result.outcome is Outcome.PERMANENT:
                LOGGER.error("%s", result.reason)
                raise ServerRejectedError(result.reason, result.response.status)

            last_status = result.response.status
            if attempt < self.policy.max_attempts:
                delay_ms = next(delays)
                LOGGER.warning(
                    "%s (attempt %d/%d), retrying in %d ms",
                    result.reason, attempt, self.policy.max_attempts, delay_ms,
                )
                self._sleep(delay_ms / 1000.0)

        LOGGER.error("License server still failing after %d attempts", self.policy.max_attempts)
        raise ServerTransientError(
            "Failed to recover from server internal error.",
            status=last_status,
            attempts=self.policy.max_attempts,
        )
