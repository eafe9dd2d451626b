"""Operational cost accounting: energy and SLA penalties accumulated per tick."""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional
import pandas as pd
from loguru import logger

from .telemetry import Sample
from ..errors import ConfigurationError


@dataclass
class CostPolicy:
    """Unit prices used to convert telemetry into cost."""
    energy_unit_cost_per_wh: float = 0.15  # $ per Wh
    sla_penalty_per_violation: float = 0.10  # $ per late workload
    tick_duration_seconds: float = 1.0
    log_every_n_ticks: int = 5

    def validate(self) -> None:
        if self.energy_unit_cost_per_wh < 0:
            raise ConfigurationError("energy_unit_cost_per_wh must be non-negative")
        if self.sla_penalty_per_violation < 0:
            raise ConfigurationError("sla_penalty_per_violation must be non-negative")
        if self.tick_duration_seconds <= 0:
            raise ConfigurationError("tick_duration_seconds must be positive")
        if self.log_every_n_ticks < 0:
            raise ConfigurationError("log_every_n_ticks must be non-negative (0 disables)")


@dataclass
class CostState:
    """Running cost totals; only ever increased by the accountant."""
    energy_cost_accumulated: float = 0.0
    sla_cost_accumulated: float = 0.0

    @property
    def total_cost(self) -> float:
        return self.energy_cost_accumulated + self.sla_cost_accumulated


@dataclass(frozen=True)
class CostDelta:
    """Cost attributed to a single sample."""
    timestamp: float
    energy_cost: float
    sla_cost: float
    new_violations: int
    instantaneous_cost: float


@dataclass(frozen=True)
class TimeSeriesPoint:
    timestamp: float
    power_watts: float
    cost: float


class CostAccountant:
    """Turns samples into cost deltas and owns the running CostState.

    Violation counts in samples are cumulative snapshots, so only the
    increase over the highest count seen so far is penalised.
    """

    def __init__(self, policy: CostPolicy, state: Optional[CostState] = None):
        policy.validate()
        self.policy = policy
        self.state = state if state is not None else CostState()
        self.samples: List[Sample] = []
        self.time_series: List[TimeSeriesPoint] = []
        self.observed_violations = 0
        self.tick_count = 0
        self.logger = logger.bind(component="CostAccountant")

    def compute_delta(self, sample: Sample) -> CostDelta:
        """Cost of a sample given the violations already observed. No side effects."""
        self._validate(sample)
        policy = self.policy

        energy_cost = (sample.total_power_watts * policy.tick_duration_seconds / 3600.0
                       * policy.energy_unit_cost_per_wh)
        new_violations = max(0, sample.sla_violation_count - self.observed_violations)
        sla_cost = new_violations * policy.sla_penalty_per_violation
        instantaneous_cost = sample.total_power_watts * policy.energy_unit_cost_per_wh + sla_cost

        return CostDelta(
            timestamp=sample.timestamp,
            energy_cost=energy_cost,
            sla_cost=sla_cost,
            new_violations=new_violations,
            instantaneous_cost=instantaneous_cost,
        )

    def accumulate(self, sample: Sample) -> CostDelta:
        """Apply a sample to the running totals and the reporting time series."""
        delta = self.compute_delta(sample)

        self.state.energy_cost_accumulated += delta.energy_cost
        self.state.sla_cost_accumulated += delta.sla_cost
        self.observed_violations += delta.new_violations
        self.samples.append(sample)
        self.time_series.append(TimeSeriesPoint(
            timestamp=sample.timestamp,
            power_watts=sample.total_power_watts,
            cost=delta.instantaneous_cost,
        ))
        self.tick_count += 1

        every = self.policy.log_every_n_ticks
        if every and self.tick_count % every == 0:
            energy_rate = sample.total_power_watts * self.policy.energy_unit_cost_per_wh
            self.logger.info(
                f"Time: {sample.timestamp:.1f} sec | Power: {sample.total_power_watts:.2f} W | "
                f"Current Cost: ${delta.instantaneous_cost:.2f} "
                f"(Energy: ${energy_rate:.2f}, SLA: ${delta.sla_cost:.2f})"
            )
        return delta

    def _validate(self, sample: Sample) -> None:
        if not math.isfinite(sample.total_power_watts) or sample.total_power_watts < 0:
            raise ValueError(f"Invalid power reading at {sample.timestamp}: "
                             f"{sample.total_power_watts}")
        if sample.sla_violation_count < 0:
            raise ValueError(f"Negative SLA violation count at {sample.timestamp}")
        if self.samples and sample.timestamp < self.samples[-1].timestamp:
            raise ValueError(f"Sample at {sample.timestamp} precedes previous sample "
                             f"at {self.samples[-1].timestamp}")

    @classmethod
    def replay(cls, samples: Iterable[Sample], policy: CostPolicy) -> "CostAccountant":
        """Rebuild an accountant from a recorded sample sequence."""
        accountant = cls(policy)
        for sample in samples:
            accountant.accumulate(sample)
        return accountant

    def to_frame(self) -> pd.DataFrame:
        """Time series of (timestamp, power, cost) for plotting or export."""
        return pd.DataFrame(
            {
                "timestamp": [p.timestamp for p in self.time_series],
                "power_watts": [p.power_watts for p in self.time_series],
                "cost": [p.cost for p in self.time_series],
            }
        )
