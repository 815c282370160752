"""
azmonitor — Azure Monitor metrics receiver.

Resolves configured resource, resource group and subscription targets into
per-resource collection jobs and gathers their metrics concurrently.
"""

__version__ = "0.3.0"
