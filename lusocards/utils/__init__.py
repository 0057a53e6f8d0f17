"""Utils module."""

from .helpers import (
    MS_PER_DAY,
    new_id,
    now_ms,
    round_half_up,
    today_iso,
)
from .frequency import FREQUENCY_BUCKETS, normalize_frequency
from .parsing import TextParser
from .logger import setup_logger

__all__ = [
    'MS_PER_DAY',
    'new_id',
    'now_ms',
    'round_half_up',
    'today_iso',
    'FREQUENCY_BUCKETS',
    'normalize_frequency',
    'TextParser',
    'setup_logger',
]
