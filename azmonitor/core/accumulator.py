"""
Sinks for collected metrics.

The collector pushes every record as soon as its target's call returns, from
many tasks at once, so an Accumulator must accept concurrent writes.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from .models import CollectedMetric


class Accumulator(Protocol):
    def add_fields(
        self,
        name: str,
        fields: Dict[str, float],
        tags: Dict[str, str],
        timestamp: Optional[datetime] = None,
    ) -> None:
        ...

    def add_error(self, error: Exception) -> None:
        ...


class MemoryAccumulator:
    """Lock-protected in-memory sink, used by the API surfaces and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics: List[CollectedMetric] = []
        self._errors: List[Exception] = []

    def add_fields(self, name, fields, tags, timestamp=None) -> None:
        record = CollectedMetric(name=name, fields=dict(fields), tags=dict(tags), timestamp=timestamp)
        with self._lock:
            self._metrics.append(record)

    def add_error(self, error: Exception) -> None:
        with self._lock:
            self._errors.append(error)

    @property
    def metrics(self) -> List[CollectedMetric]:
        with self._lock:
            return list(self._metrics)

    @property
    def errors(self) -> List[Exception]:
        with self._lock:
            return list(self._errors)

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._errors.clear()
