"""Main cloud simulator using SimPy."""

import simpy
import random
from typing import List, Sequence
from dataclasses import dataclass
import time
from loguru import logger

from .broker import Broker
from .resources import Host, ResourceState
from .workload import Workload
from .events import EventBus, EventHandler, SimulationEvent, EventType


@dataclass
class SimulationConfig:
    """Configuration for simulation runs."""
    scheduling_interval: float = 1.0  # seconds between clock ticks
    max_duration: float = 3600.0  # hard stop if workloads never drain
    random_seed: int = 42

    # Host failure parameters
    enable_failures: bool = False
    host_failure_rate: float = 0.001  # failures per hour per host
    host_recovery_time: float = 300.0  # 5 minutes

    def __post_init__(self):
        if self.scheduling_interval <= 0:
            raise ValueError("scheduling_interval must be positive")
        if self.max_duration <= 0:
            raise ValueError("max_duration must be positive")


class CloudSimulator:
    """Discrete-event cloud substrate driving a fixed clock.

    Every tick the simulator applies queued broker commands, binds waiting
    workloads, advances execution and then publishes a CLOCK_TICK event to
    the registered listeners in registration order.
    """

    def __init__(self, config: SimulationConfig, hosts: Sequence[Host]):
        self.config = config
        self.env = simpy.Environment()
        self.event_bus = EventBus()
        self.random = random.Random(config.random_seed)

        self.hosts: List[Host] = list(hosts)
        self.broker = Broker(self.hosts)

        self.tick_count = 0
        self.end_time: float = 0.0
        self._ended = self.env.event()

        self.event_bus.subscribe(EventType.HOST_FAILURE, self._handle_host_failure)
        self.event_bus.subscribe(EventType.HOST_RECOVERY, self._handle_host_recovery)

        logger.info(f"CloudSimulator initialized with {len(self.hosts)} hosts, "
                   f"{config.scheduling_interval}s scheduling interval")

    def add_on_clock_tick_listener(self, listener: EventHandler) -> None:
        """Register a callback invoked with every CLOCK_TICK event."""
        self.event_bus.subscribe(EventType.CLOCK_TICK, listener)

    def add_on_simulation_end_listener(self, listener: EventHandler) -> None:
        self.event_bus.subscribe(EventType.SIMULATION_ENDED, listener)

    def submit_workloads(self, workloads: Sequence[Workload]) -> None:
        """Hand workloads to the broker; each arrives after its submission delay."""
        self.broker.submit_workload_list(workloads)
        for workload in workloads:
            self.env.process(self._workload_arrival_process(workload))

    def run(self) -> float:
        """Run until every workload finished or max_duration elapsed."""
        logger.info("Starting cloud simulation")
        start_time = time.time()

        # Initial VMs exist before the first tick
        self.broker.apply_pending_commands(self.env.now)

        self.env.process(self._clock_process())
        self.env.run(until=self._ended)

        elapsed_time = time.time() - start_time
        logger.info(f"Simulation completed in {elapsed_time:.2f}s "
                   f"(simulated {self.end_time:.1f}s over {self.tick_count} ticks)")
        return self.end_time

    @property
    def now(self) -> float:
        return self.env.now

    def _workload_arrival_process(self, workload: Workload):
        yield self.env.timeout(workload.submission_delay)
        self.broker.workload_arrived(workload, self.env.now)

    def _clock_process(self):
        interval = self.config.scheduling_interval
        while True:
            yield self.env.timeout(interval)
            now = self.env.now

            self.broker.apply_pending_commands(now)
            self.broker.advance(now)
            self.broker.bind_waiting_workloads(now)

            for event in self.event_bus.pop_due_events(now):
                self.event_bus.publish(event)
            if self.config.enable_failures:
                self._inject_failures(now)

            self.tick_count += 1
            self.event_bus.publish(SimulationEvent(
                timestamp=now,
                event_type=EventType.CLOCK_TICK,
                resource_id="clock",
            ))

            if self._should_stop(now):
                self._finish(now)
                return

    def _should_stop(self, now: float) -> bool:
        submitted = self.broker.get_submitted_workload_list()
        if submitted and self.broker.all_workloads_finished():
            logger.info(f"All {len(submitted)} workloads finished at {now:.1f}s")
            return True
        if now >= self.config.max_duration:
            logger.warning(f"Maximum duration {self.config.max_duration:.0f}s reached "
                           f"with unfinished workloads")
            return True
        return False

    def _finish(self, now: float) -> None:
        self.end_time = now
        self.event_bus.publish(SimulationEvent(
            timestamp=now,
            event_type=EventType.SIMULATION_ENDED,
            resource_id="clock",
        ))
        self._ended.succeed(now)

    def _inject_failures(self, now: float) -> None:
        """Randomly fail available hosts at the configured hourly rate."""
        failure_prob = self.config.host_failure_rate * self.config.scheduling_interval / 3600.0
        for host in self.hosts:
            if host.state == ResourceState.AVAILABLE and self.random.random() < failure_prob:
                self.event_bus.publish(SimulationEvent(
                    timestamp=now,
                    event_type=EventType.HOST_FAILURE,
                    resource_id=str(host.host_id),
                    data={"host": host},
                ))

    def _handle_host_failure(self, event: SimulationEvent) -> None:
        host = event.data["host"]
        host.fail()

        # Schedule recovery
        self.event_bus.schedule_event(SimulationEvent(
            timestamp=event.timestamp + self.config.host_recovery_time,
            event_type=EventType.HOST_RECOVERY,
            resource_id=str(host.host_id),
            data={"host": host},
        ))

    def _handle_host_recovery(self, event: SimulationEvent) -> None:
        event.data["host"].recover()
