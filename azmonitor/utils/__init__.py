"""
azmonitor Utilities — Shared helpers for dates, resource ids and batching.
"""

from .helpers import (
    utc_now,
    iso_now,
    format_time_grain,
    safe_float,
    parse_resource_id,
    sanitize_name,
    chunk_list,
    with_concurrency_limit,
)

__all__ = [
    "utc_now",
    "iso_now",
    "format_time_grain",
    "safe_float",
    "parse_resource_id",
    "sanitize_name",
    "chunk_list",
    "with_concurrency_limit",
]
