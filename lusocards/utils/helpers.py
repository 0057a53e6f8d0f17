"""Utility functions."""

import math
import time
import uuid
from datetime import datetime, timezone

MS_PER_DAY = 86_400_000


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def today_iso(ms: int) -> str:
    """Calendar day (UTC) of an epoch-ms timestamp."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).date().isoformat()


def new_id() -> str:
    """Opaque unique id."""
    return str(uuid.uuid4())


def round_half_up(value: float) -> int:
    """Round half up: 2.5 -> 3, 3.5 -> 4."""
    return int(math.floor(value + 0.5))
