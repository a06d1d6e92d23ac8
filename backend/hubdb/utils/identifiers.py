from __future__ import annotations

import os
import random
import string
import time
import uuid

_BASE36 = string.digits + string.ascii_uppercase


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    Used for append-only facts (attempts, progress, certificates, audit
    events) so rows sort by creation time without an extra index.
    """
    ts_ms = int(time.time() * 1000)
    ts_bytes = ts_ms.to_bytes(6, "big", signed=False)
    rand_bytes = os.urandom(10)
    raw = bytearray(ts_bytes + rand_bytes)
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def generate_short_id(prefix: str = "ID") -> str:
    """
    Short id like 'ORG-1F2A9C3D' for tenant and catalog rows.

    SQLAlchemy calls column defaults with zero positional arguments, so this
    must keep working as `generate_short_id()`.
    """
    block = "".join(random.choices(string.ascii_uppercase + string.digits, k=8))
    if prefix:
        return f"{prefix}-{block}"
    return block


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))
