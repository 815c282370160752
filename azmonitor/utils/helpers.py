"""
azmonitor Utility Library.

Common helper functions used across all modules.
"""

import asyncio
import re
from typing import Any, Awaitable, Dict, List, Optional
from datetime import datetime, timedelta, timezone


# ─────────────────────────────────────────────────────────────
# Date Helpers
# ─────────────────────────────────────────────────────────────

def utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def iso_now() -> str:
    """Return current UTC time as ISO-8601 string."""
    return utc_now().isoformat()


def format_time_grain(grain: Optional[timedelta]) -> Optional[str]:
    """
    Render a time grain the way Azure Monitor spells it.

    Usage:
        format_time_grain(timedelta(minutes=5))  # "PT5M"
        format_time_grain(timedelta(days=1))     # "P1D"
    """
    if grain is None:
        return None
    seconds = int(grain.total_seconds())
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)

    out = "P"
    if days:
        out += f"{days}D"
    if hours or minutes or seconds:
        out += "T"
        if hours:
            out += f"{hours}H"
        if minutes:
            out += f"{minutes}M"
        if seconds:
            out += f"{seconds}S"
    return out if out != "P" else "PT0S"


# ─────────────────────────────────────────────────────────────
# Safe Data Access
# ─────────────────────────────────────────────────────────────

def safe_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Convert value to float safely, returning default on failure."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# ─────────────────────────────────────────────────────────────
# Azure Resource IDs
# ─────────────────────────────────────────────────────────────

def parse_resource_id(resource_id: str) -> Dict[str, str]:
    """
    Split an Azure resource id into its identifying parts.

    Usage:
        parse_resource_id(
            "/subscriptions/s1/resourceGroups/rg/providers/Microsoft.Compute/virtualMachines/vm1"
        )
        # {"subscription_id": "s1", "resource_group": "rg",
        #  "namespace": "Microsoft.Compute/virtualMachines", "resource_name": "vm1"}
    """
    parts = [p for p in resource_id.split("/") if p]
    info = {"subscription_id": "", "resource_group": "", "namespace": "", "resource_name": ""}

    lowered = [p.lower() for p in parts]
    if "subscriptions" in lowered:
        i = lowered.index("subscriptions")
        if i + 1 < len(parts):
            info["subscription_id"] = parts[i + 1]
    if "resourcegroups" in lowered:
        i = lowered.index("resourcegroups")
        if i + 1 < len(parts):
            info["resource_group"] = parts[i + 1]
    if "providers" in lowered:
        i = len(lowered) - 1 - lowered[::-1].index("providers")
        rest = parts[i + 1:]
        if rest:
            # provider namespace, then alternating type/name pairs
            types = [rest[0]] + rest[1::2]
            names = rest[2::2]
            info["namespace"] = "/".join(types)
            if names:
                info["resource_name"] = names[-1]
    return info


def sanitize_name(*parts: str) -> str:
    """Lower-case and join parts, collapsing non-alphanumeric runs into '_'."""
    joined = "_".join(p for p in parts if p)
    return re.sub(r"[^a-z0-9]+", "_", joined.lower()).strip("_")


# ─────────────────────────────────────────────────────────────
# Batch Processing
# ─────────────────────────────────────────────────────────────

def chunk_list(items: list, chunk_size: int) -> list:
    """
    Split a list into chunks of specified size.

    Usage:
        for batch in chunk_list(metrics, 20):
            query(batch)
    """
    return [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]


def with_concurrency_limit(coros: List[Awaitable], limit: int = 0) -> List[Awaitable]:
    """
    Wrap coroutines so at most `limit` of them run at once.
    A limit of 0 returns them unchanged.

    Usage:
        tasks = [asyncio.create_task(c) for c in with_concurrency_limit(coros, 10)]
    """
    if limit <= 0:
        return list(coros)

    semaphore = asyncio.Semaphore(limit)

    async def limited(coro):
        try:
            await semaphore.acquire()
        except asyncio.CancelledError:
            # the wrapped coroutine never started
            coro.close()
            raise
        try:
            return await coro
        finally:
            semaphore.release()

    return [limited(c) for c in coros]
