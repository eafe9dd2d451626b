"""Per-tick telemetry: power draw and SLA violations observed at a clock tick."""

from dataclasses import dataclass
from typing import Iterable, List, Protocol
from loguru import logger

from ..core.resources import FleetView
from ..core.workload import Workload


@dataclass(frozen=True)
class Sample:
    """Telemetry captured once per tick."""
    timestamp: float
    total_power_watts: float
    sla_violation_count: int


class WorkloadSource(Protocol):
    def get_created_workload_list(self) -> List[Workload]:
        ...


def count_sla_violations(workloads: Iterable[Workload]) -> int:
    """Finished workloads that completed after their expected finish time."""
    return sum(1 for wl in workloads if wl.is_sla_violated())


class TelemetrySampler:
    """Builds a Sample from the fleet view and the broker's workloads.

    The violation count is the number of finished-and-late workloads known
    at sample time; de-duplication across ticks is the accountant's job.
    """

    def __init__(self, broker: WorkloadSource):
        self.broker = broker
        self.samples_taken = 0

    def sample(self, fleet_view: FleetView, current_time: float) -> Sample:
        total_power = sum(
            host.power_model.get_power(host.cpu_utilization)
            for host in fleet_view.active_hosts()
        )
        violations = count_sla_violations(self.broker.get_created_workload_list())

        self.samples_taken += 1
        logger.debug(f"Sample at {current_time:.1f}s: {total_power:.2f} W, "
                    f"{violations} SLA violations")
        return Sample(
            timestamp=current_time,
            total_power_watts=float(total_power),
            sla_violation_count=violations,
        )
