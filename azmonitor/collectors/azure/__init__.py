from .metrics import AzureMetricsCollector

__all__ = ["AzureMetricsCollector"]
