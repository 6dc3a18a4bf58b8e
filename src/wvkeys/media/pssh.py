from __future__ import annotations

import uuid


# Box layout (ISO/IEC 23001-7, version 0):
# size (4, big-endian) | "pssh" (4) | version (1) | flags (3) | system_id (16)
# | data_size (4, big-endian) | data

WIDEVINE_SYSTEM_ID = uuid.UUID("edef8ba9-79d6-4ace-a3c8-27dcd51d21ed").bytes
PSSH_BOX_TYPE = b"pssh"
PSSH_HEADER_SIZE = 32


def pssh_box_from_pssh_data(data: bytes, system_id: bytes = WIDEVINE_SYSTEM_ID) -> bytes:
    """Wrap raw protection system data into a version 0 PSSH box."""
    if len(system_id) != 16:
        raise ValueError(f"System ID must be 16 bytes, got {len(system_id)}")
    box_size = PSSH_HEADER_SIZE + len(data)
    return b"".join([
        box_size.to_bytes(4, "big"),
        PSSH_BOX_TYPE,
        bytes(4),  # version 0, flags 0
        system_id,
        len(data).to_bytes(4, "big"),
        data,
    ])


def pssh_data_from_box(box: bytes) -> bytes:
    """Return the protection system data carried in a version 0 PSSH box."""
    if len(box) < PSSH_HEADER_SIZE or box[4:8] != PSSH_BOX_TYPE:
        raise ValueError("Not a PSSH box")
    if int.from_bytes(box[0:4], "big") != len(box):
        raise ValueError("PSSH box size does not match its length")
    if box[8] != 0:
        raise ValueError(f"Unsupported PSSH box version: {box[8]}")
    data_size = int.from_bytes(box[28:32], "big")
    data = box[PSSH_HEADER_SIZE:]
    if len(data) != data_size:
        raise ValueError("Truncated PSSH data")
    return data
