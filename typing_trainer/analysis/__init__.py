from .differ import DifferenceAnalyzer
from .metrics import MetricsEngine

__all__ = ["DifferenceAnalyzer", "MetricsEngine"]
