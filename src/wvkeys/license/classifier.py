from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .codec import LICENSE_STATUS_OK
from .types import LicenseResponse

# The server returns INTERNAL_ERROR intermittently; the next request usually
# succeeds.
LICENSE_STATUS_TRANSIENT_ERROR = "INTERNAL_ERROR"


class Outcome(Enum):
    SUCCESS = "success"
    PERMANENT = "permanent"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Classification:
    outcome: Outcome
    reason: str
    response: LicenseResponse


def classify(response: LicenseResponse) -> Classification:
    """Decide whether a license response succeeded, failed for good, or may be retried."""
    if response.status == LICENSE_STATUS_OK:
        return Classification(Outcome.SUCCESS, "OK", response)
    reason = f"Received non-OK license response status '{response.status}'"
    if response.status == LICENSE_STATUS_TRANSIENT_ERROR:
        return Classification(Outcome.TRANSIENT, reason, response)
    return Classification(Outcome.PERMANENT, reason, response)
