"""Utility functions and helpers."""

from .async_utils import backoff_delay, cancel_task, retry_with_backoff
from .date_utils import format_duration, next_local_midnight, parse_timestamp
from .similarity import cosine_similarity

__all__ = [
    "retry_with_backoff",
    "backoff_delay",
    "cancel_task",
    "format_duration",
    "next_local_midnight",
    "parse_timestamp",
    "cosine_similarity",
]
