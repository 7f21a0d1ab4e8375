"""
Photo identifiers.

An id is 12 bytes rendered as 24 lower-case hex characters:

    4 bytes  capture time, seconds since the epoch (big-endian)
    5 bytes  random value fixed per process
    3 bytes  counter, random start, wraps at 2**24

Hex order equals byte order, so ids sort by capture second.
"""

import os
import re
import threading
from datetime import datetime, timezone

_ID_PATTERN = re.compile(r'^[0-9a-f]{24}$')
_MAX_SECONDS = 2 ** 32 - 1

_process_random = os.urandom(5)
_counter = int.from_bytes(os.urandom(3), 'big')
_counter_lock = threading.Lock()


def _next_counter() -> int:
    global _counter
    with _counter_lock:
        _counter = (_counter + 1) % 0x1000000
        return _counter


def new_photo_id(taken_at: datetime) -> str:
    """
    Create a new id whose leading bytes encode the capture time.

    Args:
        taken_at: Capture time; naive values are read as UTC

    Returns:
        24 character hex id
    """
    if taken_at.tzinfo is None:
        taken_at = taken_at.replace(tzinfo=timezone.utc)
    seconds = int(taken_at.timestamp())
    seconds = min(max(seconds, 0), _MAX_SECONDS)
    raw = (
        seconds.to_bytes(4, 'big')
        + _process_random
        + _next_counter().to_bytes(3, 'big')
    )
    return raw.hex()


def is_valid_photo_id(value) -> bool:
    """True if value is a well-formed id string."""
    return isinstance(value, str) and bool(_ID_PATTERN.match(value))


def photo_id_timestamp(photo_id: str) -> datetime:
    """Return the capture second encoded in an id as an aware UTC datetime."""
    seconds = int(photo_id[:8], 16)
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
