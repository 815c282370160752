"""
azmonitor API — on-demand gather cycles over HTTP.

The receiver is built once, on first use, from the TOML file named by
AZMONITOR_CONFIG. Periodic scheduling is left to whoever calls /api/metrics.
"""
import asyncio
import os

import uvicorn
from fastapi import FastAPI, HTTPException

from .. import __version__
from ..core.accumulator import MemoryAccumulator
from ..core.config import load_config
from ..core.exceptions import SetupError
from ..core.logging import get_logger
from ..core.receiver import AzureMonitorReceiver
from ..utils.helpers import iso_now
from .adapters import adapt_gather_result, adapt_target

logger = get_logger(__name__)

# ─── App ──────────────────────────────────────────────────────────────────
app = FastAPI(
    title="azmonitor API",
    version=__version__,
    description="Azure Monitor metrics receiver: resolve targets and run gather cycles on demand.",
)

_receiver: AzureMonitorReceiver | None = None
_receiver_lock: asyncio.Lock | None = None  # Lazy-init to avoid binding to wrong event loop


async def get_receiver() -> AzureMonitorReceiver:
    """Build and initialize the receiver once; later calls reuse it."""
    global _receiver, _receiver_lock

    if _receiver_lock is None:
        _receiver_lock = asyncio.Lock()

    async with _receiver_lock:
        if _receiver is None:
            path = os.environ.get("AZMONITOR_CONFIG", "azmonitor.toml")
            config = load_config(path)
            _receiver = await AzureMonitorReceiver.create(config)
        return _receiver


# ─── Routes ───────────────────────────────────────────────────────────────

@app.get("/api/health")
def health_check():
    """Quick liveness probe."""
    return {
        "status": "ok",
        "version": __version__,
        "timestamp": iso_now(),
        "initialized": _receiver is not None and _receiver.initialized,
    }


@app.get("/api/targets")
async def list_targets():
    """Final per-resource collection jobs after resolution and splitting."""
    try:
        receiver = await get_receiver()
    except SetupError as e:
        logger.error(f"Receiver setup failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return {
        "count": len(receiver.targets),
        "targets": [adapt_target(t) for t in receiver.targets],
    }


@app.get("/api/metrics")
async def gather_metrics():
    """
    Run one gather cycle and return every collected record.
    Per-target failures are reported in `errors`, not as an HTTP error.
    """
    try:
        receiver = await get_receiver()
    except SetupError as e:
        logger.error(f"Receiver setup failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    acc = MemoryAccumulator()
    result = await receiver.gather(acc)
    return adapt_gather_result(result, acc.metrics)


def main():
    """CLI entrypoint for the API server."""
    uvicorn.run("azmonitor.api.server:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
