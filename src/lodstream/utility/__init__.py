from .metrics import METRICS, MetricKind, MetricSelector, ZERO_DISTANCE_UTILITY

__all__ = ["METRICS", "MetricKind", "MetricSelector", "ZERO_DISTANCE_UTILITY"]
