"""Tick listener that samples telemetry and feeds the cost accountant."""

from typing import Callable, Optional
from loguru import logger

from .accounting import CostAccountant, CostDelta
from .telemetry import TelemetrySampler
from ..core.events import SimulationEvent
from ..core.resources import FleetView


class MonitoringListener:
    """Clock-tick callback: sample, then account. Ticks at time 0 are ignored."""

    def __init__(
        self,
        sampler: TelemetrySampler,
        accountant: CostAccountant,
        fleet_view: Callable[[], FleetView],
    ):
        self.sampler = sampler
        self.accountant = accountant
        self.fleet_view = fleet_view
        logger.info("Monitoring listener initialized")

    def on_clock_tick(self, event: SimulationEvent) -> Optional[CostDelta]:
        current_time = event.timestamp
        if current_time <= 0:
            return None
        sample = self.sampler.sample(self.fleet_view(), current_time)
        return self.accountant.accumulate(sample)

    __call__ = on_clock_tick
