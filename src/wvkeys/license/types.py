from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class TrackType(Enum):
    """Logical stream class for which the license server issues a key."""

    SD = "SD"
    HD = "HD"
    AUDIO = "AUDIO"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_string(cls, value: str) -> "TrackType":
        """Map a wire track type string to a TrackType, UNKNOWN if unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    def __str__(self) -> str:
        return self.value


REQUIRED_TRACK_TYPES: Tuple[TrackType, ...] = (TrackType.SD, TrackType.HD, TrackType.AUDIO)


@dataclass(frozen=True)
class EncryptionKey:
    """Key material for one track type.

    Attributes:
        key: Raw content key bytes
        key_id: Raw key identifier bytes
        pssh: Complete PSSH box carrying the Widevine initialization data
    """

    key: bytes
    key_id: bytes
    pssh: bytes

    def __repr__(self) -> str:
        return f"EncryptionKey(key_id={self.key_id.hex()}, pssh={len(self.pssh)} bytes)"


@dataclass(frozen=True)
class PsshEntry:
    drm_type: str
    data: str


@dataclass(frozen=True)
class TrackEntry:
    """One track object from a license response. Binary fields are still base64."""

    type: str
    key: str
    key_id: str
    pssh: Tuple[PsshEntry, ...]


@dataclass(frozen=True)
class LicenseResponse:
    """Decoded license body.

    ``tracks`` is only populated for OK responses; other statuses carry no
    track data.
    """

    status: str
    tracks: Tuple[TrackEntry, ...] = ()


KeyMap = Dict[TrackType, EncryptionKey]
