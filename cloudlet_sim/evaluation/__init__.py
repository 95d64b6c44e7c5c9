"""Evaluation and analysis modules."""

from .metrics import SimulationAnalyzer, MetricsCalculator, records_to_dataframe

__all__ = [
    "SimulationAnalyzer",
    "MetricsCalculator",
    "records_to_dataframe",
]
