from __future__ import annotations

import os
import time
import uuid


def generate_uuid7() -> str:
    """
    Time-ordered UUIDv7 string, used as the primary key of every table.

    48-bit millisecond timestamp, 4-bit version, 2-bit variant and random
    bits for the remainder, so ids sort by creation time.
    """
    ts_ms = int(time.time() * 1000) & ((1 << 48) - 1)
    rand = int.from_bytes(os.urandom(10), "big")
    value = (ts_ms << 80) | rand
    value = (value & ~(0xF << 76)) | (0x7 << 76)
    value = (value & ~(0x3 << 62)) | (0x2 << 62)
    return str(uuid.UUID(int=value))


def normalise_email(email: str) -> str:
    return (email or "").strip().lower()
