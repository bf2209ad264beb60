from .metrics import MetricsCollector, ShipperMetrics

__all__ = ["MetricsCollector", "ShipperMetrics"]
