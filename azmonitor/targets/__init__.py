"""
azmonitor Targets — Setup pipeline that turns configured targets into
per-resource collection jobs.
"""

from .resolver import TargetResolver
from .validator import MetricsValidator
from .aggregations import AggregationAssigner
from .deduplicator import deduplicate
from .splitter import TimeGrainSplitter, BatchSplitter

__all__ = [
    "TargetResolver",
    "MetricsValidator",
    "AggregationAssigner",
    "deduplicate",
    "TimeGrainSplitter",
    "BatchSplitter",
]
