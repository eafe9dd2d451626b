"""End-of-run summary of cost, SLA compliance and host utilization."""

from typing import Any, Dict, List, Sequence, Tuple
from dataclasses import dataclass
import numpy as np
from loguru import logger

from ..core.resources import FleetView
from ..core.workload import Workload
from ..errors import SubstrateInconsistency
from ..monitoring.accounting import CostState


@dataclass(frozen=True)
class HostReport:
    host_id: int
    cpu_utilization: float
    power_watts: float
    is_failed: bool = False


@dataclass(frozen=True)
class Report:
    """Final, read-only result of a simulation run."""
    total_energy_cost: float
    total_sla_cost: float
    total_finished: int
    sla_violations: int
    sla_violation_rate: float
    avg_execution_time: float
    hosts: Tuple[HostReport, ...]
    finished_workloads: Tuple[Workload, ...] = ()
    warnings: Tuple[str, ...] = ()
    scale_up_events: int = 0
    scale_down_events: int = 0
    simulation_time: float = 0.0

    @property
    def total_cost(self) -> float:
        return self.total_energy_cost + self.total_sla_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': {
                'simulation_time': self.simulation_time,
                'total_finished': self.total_finished,
            },
            'cost': {
                'energy_cost': self.total_energy_cost,
                'sla_cost': self.total_sla_cost,
                'total_cost': self.total_cost,
            },
            'sla': {
                'violations': self.sla_violations,
                'violation_rate': self.sla_violation_rate,
                'avg_execution_time': self.avg_execution_time,
            },
            'scaling': {
                'scale_up_events': self.scale_up_events,
                'scale_down_events': self.scale_down_events,
            },
            'hosts': [
                {
                    'host_id': host.host_id,
                    'cpu_utilization': host.cpu_utilization,
                    'power_watts': host.power_watts,
                    'is_failed': host.is_failed,
                }
                for host in self.hosts
            ],
            'workloads': [
                {
                    'workload_id': wl.workload_id,
                    'vm_id': wl.vm.vm_id if wl.vm is not None else None,
                    'start_time': wl.start_time,
                    'finish_time': wl.finish_time,
                    'sla_violated': wl.is_sla_violated(),
                }
                for wl in self.finished_workloads
            ],
            'warnings': list(self.warnings),
        }


class ResultReporter:
    """Builds the final Report. Reads its inputs, never mutates them."""

    def __init__(self):
        self.logger = logger.bind(component="ResultReporter")

    def summarize(
        self,
        cost_state: CostState,
        finished_workloads: Sequence[Workload],
        fleet_view: FleetView,
        inconsistencies: Sequence[SubstrateInconsistency] = (),
        scale_up_events: int = 0,
        scale_down_events: int = 0,
        simulation_time: float = 0.0,
    ) -> Report:
        # Sorting only fixes output order
        ordered = sorted(finished_workloads, key=lambda wl: wl.finish_time)
        total_finished = len(ordered)
        violations = sum(1 for wl in ordered if wl.is_sla_violated())
        violation_rate = violations / total_finished if total_finished > 0 else 0.0

        execution_times = [wl.finish_time - wl.start_time for wl in ordered]
        avg_execution_time = float(np.mean(execution_times)) if execution_times else 0.0

        hosts = tuple(
            HostReport(
                host_id=host.host_id,
                cpu_utilization=host.cpu_utilization,
                power_watts=host.power_watts,
                is_failed=host.is_failed,
            )
            for host in fleet_view.hosts
        )

        warnings = tuple(str(issue) for issue in inconsistencies)
        for warning in warnings:
            self.logger.warning(f"Substrate inconsistency during run: {warning}")

        report = Report(
            total_energy_cost=cost_state.energy_cost_accumulated,
            total_sla_cost=cost_state.sla_cost_accumulated,
            total_finished=total_finished,
            sla_violations=violations,
            sla_violation_rate=violation_rate,
            avg_execution_time=avg_execution_time,
            hosts=hosts,
            finished_workloads=tuple(ordered),
            warnings=warnings,
            scale_up_events=scale_up_events,
            scale_down_events=scale_down_events,
            simulation_time=simulation_time,
        )

        self.logger.info(f"Report: total cost ${report.total_cost:.2f}, "
                        f"{violations}/{total_finished} SLA violations")
        return report


def format_report(report: Report) -> str:
    """
    Format a report as a readable text block.

    Args:
        report: Final simulation report

    Returns:
        Formatted multi-line string
    """
    lines: List[str] = []
    lines.append("=" * 60)
    lines.append("FINAL RESULTS")
    lines.append("=" * 60)
    lines.append(f"Total Energy Cost:         ${report.total_energy_cost:.2f}")
    lines.append(f"Total SLA Violation Cost:  ${report.total_sla_cost:.2f}")
    lines.append(f"Total Operational Cost:    ${report.total_cost:.2f}")

    lines.append("\nSLA Metrics:")
    lines.append(f"  Total Workloads:  {report.total_finished}")
    lines.append(f"  Violations:       {report.sla_violations} "
                 f"({report.sla_violation_rate * 100:.1f}%)")

    lines.append("\nScaling Events:")
    lines.append(f"  Scale Up:    {report.scale_up_events}")
    lines.append(f"  Scale Down:  {report.scale_down_events}")

    lines.append("\nResource Utilization:")
    for host in report.hosts:
        status = " (failed)" if host.is_failed else ""
        lines.append(f"Host {host.host_id}: CPU {host.cpu_utilization * 100:.1f}% | "
                     f"Power {host.power_watts:.1f}W{status}")

    if report.warnings:
        lines.append("\nWarnings:")
        for warning in report.warnings:
            lines.append(f"  {warning}")

    lines.append("=" * 60)
    return "\n".join(lines)
