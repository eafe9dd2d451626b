"""Telemetry sampling and cost accounting."""

from .telemetry import Sample, TelemetrySampler, count_sla_violations
from .accounting import CostAccountant, CostDelta, CostPolicy, CostState, TimeSeriesPoint
from .monitor import MonitoringListener

__all__ = [
    "Sample",
    "TelemetrySampler",
    "count_sla_violations",
    "CostAccountant",
    "CostDelta",
    "CostPolicy",
    "CostState",
    "TimeSeriesPoint",
    "MonitoringListener",
]
