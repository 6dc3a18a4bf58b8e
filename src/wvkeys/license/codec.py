"""
Wire codec for the license protocol.

Requests and responses are JSON objects whose payloads travel base64-encoded
inside an outer JSON envelope:

    request envelope:  {"request": b64(request), "signature": b64(sig), "signer": name}
    response envelope: {"response": b64(license)}

Decoding validates the structure in one step and raises on the first
deviation; nothing here is retryable.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, List, Tuple

from ..errors import DecodeError, InvalidArgumentError, LicenseParseError
from .types import LicenseResponse, PsshEntry, REQUIRED_TRACK_TYPES, TrackEntry

DRM_TYPE_WIDEVINE = "WIDEVINE"
LICENSE_STATUS_OK = "OK"


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(value: str, field: str = "value") -> bytes:
    """Strictly decode a base64 string.

    Raises:
        DecodeError: If ``value`` is not a string of valid base64
    """
    if not isinstance(value, str):
        raise DecodeError(f"'{field}' is not a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"'{field}' is not valid base64: {e}") from e


def _dumps(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")


def build_request(content_id: bytes) -> bytes:
    """Build the inner license request for a content identifier.

    Args:
        content_id: Opaque content identifier

    Returns:
        UTF-8 JSON request; identical input always gives identical bytes

    Raises:
        InvalidArgumentError: If content_id is not non-empty bytes
    """
    if not isinstance(content_id, (bytes, bytearray)):
        raise InvalidArgumentError("Content ID must be bytes")
    if not content_id:
        raise InvalidArgumentError("Content ID must not be empty")

    request = {
        "content_id": encode_base64(bytes(content_id)),
        "policy": "",
        "tracks": [{"type": str(track_type)} for track_type in REQUIRED_TRACK_TYPES],
        "drm_types": [DRM_TYPE_WIDEVINE],
    }
    return _dumps(request)


def wrap_signed(request: bytes, signature: bytes, signer_name: str) -> bytes:
    """Wrap a request and its signature into the signed request envelope."""
    envelope = {
        "request": encode_base64(request),
        "signature": encode_base64(signature),
        "signer": signer_name,
    }
    return _dumps(envelope)


def _loads(raw: bytes, error_cls: type, what: str) -> Any:
    try:
        return json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise error_cls(f"{what} is not in JSON format: {e}") from e


def decode_response_envelope(raw_response: bytes) -> bytes:
    """Extract the base64 license body from a raw server response.

    Raises:
        DecodeError: If the response is not a JSON object with a valid
            base64 string in its ``response`` field
    """
    root = _loads(raw_response, DecodeError, "Response")
    if not isinstance(root, dict):
        raise DecodeError("Response is not a JSON object")
    if "response" not in root:
        raise DecodeError("Response has no 'response' field")
    return decode_base64(root["response"], "response")


def _require(obj: Dict[str, Any], field: str, expected: type, where: str) -> Any:
    value = obj.get(field)
    if not isinstance(value, expected):
        raise LicenseParseError(f"{where}: '{field}' missing or not a {expected.__name__}")
    return value


def _parse_pssh_list(pssh_list: List[Any], where: str) -> Tuple[PsshEntry, ...]:
    entries = []
    for i, pssh in enumerate(pssh_list):
        pssh_where = f"{where}.pssh[{i}]"
        if not isinstance(pssh, dict):
            raise LicenseParseError(f"{pssh_where} is not an object")
        entries.append(PsshEntry(
            drm_type=_require(pssh, "drm_type", str, pssh_where),
            data=_require(pssh, "data", str, pssh_where),
        ))
    return tuple(entries)


def _parse_track(track: Any, where: str) -> TrackEntry:
    if not isinstance(track, dict):
        raise LicenseParseError(f"{where} is not an object")
    return TrackEntry(
        type=_require(track, "type", str, where),
        key=_require(track, "key", str, where),
        key_id=_require(track, "key_id", str, where),
        pssh=_parse_pssh_list(_require(track, "pssh", list, where), where),
    )


def parse_license_body(body: bytes) -> LicenseResponse:
    """Parse and validate a decoded license body.

    Track data is only examined for OK responses; an error status is
    reported as-is whatever else the body holds.

    Raises:
        LicenseParseError: On the first structural deviation
    """
    root = _loads(body, LicenseParseError, "License")
    if not isinstance(root, dict):
        raise LicenseParseError("License is not a JSON object")
    status = _require(root, "status", str, "license")
    if status != LICENSE_STATUS_OK:
        return LicenseResponse(status=status)

    tracks = _require(root, "tracks", list, "license")
    return LicenseResponse(
        status=status,
        tracks=tuple(_parse_track(track, f"tracks[{i}]") for i, track in enumerate(tracks)),
    )
