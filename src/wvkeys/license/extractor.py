"""
Turn the track list of an OK license response into a key map.

Extraction is all-or-nothing: the map is built locally and only handed back
once every entry has been validated and every required track type is
present.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from ..errors import (
    DecodeError,
    DuplicateTrackError,
    ExtractionFailedError,
    IncompleteTracksError,
)
from ..media.pssh import pssh_box_from_pssh_data
from .codec import DRM_TYPE_WIDEVINE, decode_base64
from .types import EncryptionKey, KeyMap, REQUIRED_TRACK_TYPES, TrackEntry, TrackType

LOGGER = logging.getLogger(__name__)


def _decode(value: str, field: str, track_type: TrackType) -> bytes:
    try:
        return decode_base64(value, field)
    except DecodeError as e:
        raise ExtractionFailedError(f"{track_type} track: {e}") from e


def _get_pssh_data(track: TrackEntry, track_type: TrackType) -> bytes:
    if not track.pssh:
        raise ExtractionFailedError(f"{track_type} track has no pssh entry")
    if len(track.pssh) > 1:
        LOGGER.warning(
            "%s track has %d pssh entries, using the first", track_type, len(track.pssh)
        )
    pssh = track.pssh[0]
    if pssh.drm_type != DRM_TYPE_WIDEVINE:
        raise ExtractionFailedError(
            f"Expecting drm_type '{DRM_TYPE_WIDEVINE}', got '{pssh.drm_type}'"
        )
    return _decode(pssh.data, "pssh.data", track_type)


def extract_encryption_keys(
    tracks: Sequence[TrackEntry],
    pssh_formatter: Callable[[bytes], bytes] = pssh_box_from_pssh_data,
) -> KeyMap:
    """Build the key map for an OK response.

    Args:
        tracks: Track entries of the license response
        pssh_formatter: Turns raw Widevine data into the stored PSSH payload

    Returns:
        New dict holding one EncryptionKey per track type

    Raises:
        DuplicateTrackError: A track type appears twice
        IncompleteTracksError: A required track type is missing
        ExtractionFailedError: Key, key ID or pssh data is malformed
    """
    if len(tracks) < len(REQUIRED_TRACK_TYPES):
        raise IncompleteTracksError(
            f"Expected at least {len(REQUIRED_TRACK_TYPES)} tracks, got {len(tracks)}"
        )

    keys: KeyMap = {}
    for track in tracks:
        track_type = TrackType.from_string(track.type)
        if track_type is TrackType.UNKNOWN:
            LOGGER.warning("Ignoring track with unrecognized type '%s'", track.type)
            continue
        if track_type in keys:
            raise DuplicateTrackError(f"Duplicate {track_type} track in license response")

        key = _decode(track.key, "key", track_type)
        key_id = _decode(track.key_id, "key_id", track_type)
        pssh_data = _get_pssh_data(track, track_type)
        keys[track_type] = EncryptionKey(key=key, key_id=key_id, pssh=pssh_formatter(pssh_data))

    missing = [str(t) for t in REQUIRED_TRACK_TYPES if t not in keys]
    if missing:
        raise IncompleteTracksError(f"License response has no key for: {', '.join(missing)}")
    return keys
