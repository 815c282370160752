import asyncio
import json
import os
import sys

# Force ALL logs to stderr (never stdout), stdout carries the MCP protocol
from azmonitor.core.logging import configure_logging
configure_logging(level="ERROR", stream=sys.stderr)

from mcp.server.fastmcp import FastMCP
from azmonitor.api.adapters import adapt_gather_result, adapt_target
from azmonitor.core.accumulator import MemoryAccumulator
from azmonitor.core.config import load_config
from azmonitor.core.receiver import AzureMonitorReceiver

mcp = FastMCP("AzureMonitorMetrics")
_receiver: AzureMonitorReceiver | None = None
_receiver_lock: asyncio.Lock | None = None


async def _get_receiver(config_path: str) -> AzureMonitorReceiver:
    global _receiver, _receiver_lock

    if _receiver_lock is None:
        _receiver_lock = asyncio.Lock()

    async with _receiver_lock:
        if _receiver is None:
            path = config_path.strip() or os.getenv("AZMONITOR_CONFIG", "azmonitor.toml")
            _receiver = await AzureMonitorReceiver.create(load_config(path))
        return _receiver


@mcp.tool()
async def list_metric_targets(config_path: str = "") -> str:
    """
    List the resource targets metrics are collected from, after resource
    group / subscription expansion and time grain / batch splitting.
    Falls back to AZMONITOR_CONFIG if config_path is not provided.
    """
    receiver = await _get_receiver(config_path)
    return json.dumps([adapt_target(t) for t in receiver.targets], default=str)


@mcp.tool()
async def collect_azure_metrics(config_path: str = "") -> str:
    """
    Run one gather cycle against Azure Monitor and return the collected
    measurements with any per-target errors.
    """
    receiver = await _get_receiver(config_path)
    acc = MemoryAccumulator()
    result = await receiver.gather(acc)
    return json.dumps(adapt_gather_result(result, acc.metrics), default=str)


def main():
    # ⚠️ DO NOT add prints here
    # MCP handshake requires clean stdout
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
