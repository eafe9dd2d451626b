"""Reactive autoscaling of the VM fleet from observed host CPU utilization."""

import math
from typing import List, Optional, Protocol, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum
from loguru import logger

from ..core.events import SimulationEvent
from ..core.resources import FleetView, VmSpec
from ..errors import ConfigurationError


class ScalingAction(Enum):
    """Types of scaling actions."""
    SCALE_UP = "scale_up"
    SCALE_DOWN = "scale_down"


@dataclass(frozen=True)
class ProvisionVm:
    """Ask the broker for one more VM."""
    spec: VmSpec

    @property
    def action(self) -> ScalingAction:
        return ScalingAction.SCALE_UP


@dataclass(frozen=True)
class RetireVm:
    """Ask the broker to destroy an idle VM."""
    vm_id: int

    @property
    def action(self) -> ScalingAction:
        return ScalingAction.SCALE_DOWN


ScalingCommand = Union[ProvisionVm, RetireVm]


@dataclass
class ScalingPolicy:
    """Configuration for the autoscaling controller, fixed for a run."""
    evaluation_interval_seconds: float = 10.0
    scale_up_utilization_threshold: float = 0.7
    scale_down_utilization_threshold: float = 0.3
    minimum_fleet_size: int = 5
    new_vm_spec: VmSpec = field(
        default_factory=lambda: VmSpec(mips=3000, pes=4, ram=42768, bw=18000, size=200000)
    )
    # None keeps scale-up unbounded
    max_fleet_size: Optional[int] = None

    def validate(self) -> None:
        """Raise ConfigurationError if the policy cannot drive a simulation."""
        if self.evaluation_interval_seconds <= 0:
            raise ConfigurationError("evaluation_interval_seconds must be positive")
        for name in ("scale_up_utilization_threshold", "scale_down_utilization_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be between 0 and 1, got {value}")
        if self.scale_down_utilization_threshold >= self.scale_up_utilization_threshold:
            raise ConfigurationError(
                "scale_down_utilization_threshold must be below scale_up_utilization_threshold"
            )
        if self.minimum_fleet_size < 0:
            raise ConfigurationError("minimum_fleet_size must be non-negative")
        if self.max_fleet_size is not None and self.max_fleet_size < self.minimum_fleet_size:
            raise ConfigurationError("max_fleet_size must be >= minimum_fleet_size")


class FleetBroker(Protocol):
    def submit_vm(self, spec: VmSpec) -> int:
        ...

    def destroy_vm(self, vm_id: int) -> None:
        ...

    def fleet_view(self) -> FleetView:
        ...


def average_utilization(fleet_view: FleetView) -> float:
    """Mean CPU utilization of non-failed hosts; 0.0 when there are none."""
    hosts = fleet_view.active_hosts()
    if not hosts:
        return 0.0
    return sum(host.cpu_utilization for host in hosts) / len(hosts)


class AutoscalingController:
    """Threshold autoscaler evaluated on a fixed cadence.

    At most one command per evaluation: provision when average utilization
    is above the scale-up threshold, otherwise retire the first idle VM when
    utilization is below the scale-down threshold and the fleet is larger
    than the minimum. Apart from its history the controller keeps no state
    between evaluations.
    """

    def __init__(self, policy: ScalingPolicy, broker: FleetBroker):
        policy.validate()
        self.policy = policy
        self.broker = broker
        self.scaling_history: List[Tuple[float, ScalingCommand]] = []
        self.evaluations = 0

        logger.info(f"Autoscaler initialized: every {policy.evaluation_interval_seconds}s, "
                   f"up > {policy.scale_up_utilization_threshold:.0%}, "
                   f"down < {policy.scale_down_utilization_threshold:.0%}, "
                   f"min fleet {policy.minimum_fleet_size}")

    def is_evaluation_tick(self, current_time: float) -> bool:
        if current_time <= 0:
            return False
        interval = self.policy.evaluation_interval_seconds
        remainder = math.fmod(current_time, interval)
        return math.isclose(remainder, 0.0, abs_tol=1e-9) or math.isclose(remainder, interval, abs_tol=1e-9)

    def decide(self, fleet_view: FleetView) -> Optional[ScalingCommand]:
        """Apply the scaling rules to a fleet snapshot."""
        avg_utilization = average_utilization(fleet_view)
        fleet_size = fleet_view.fleet_size
        policy = self.policy

        if avg_utilization > policy.scale_up_utilization_threshold:
            if policy.max_fleet_size is not None and fleet_size >= policy.max_fleet_size:
                logger.debug(f"High utilization ({avg_utilization:.2%}) but fleet at "
                            f"ceiling of {policy.max_fleet_size} VMs")
                return None
            logger.info(f"High utilization ({avg_utilization:.2%}) - creating new VM")
            return ProvisionVm(policy.new_vm_spec)

        elif (avg_utilization < policy.scale_down_utilization_threshold and
              fleet_size > policy.minimum_fleet_size):
            # First idle VM in fleet order
            for vm in fleet_view.vms:
                if not vm.has_active_work:
                    logger.info(f"Low utilization ({avg_utilization:.2%}) - destroying VM {vm.vm_id}")
                    return RetireVm(vm.vm_id)
            logger.debug(f"Low utilization ({avg_utilization:.2%}) but no idle VM to retire")

        return None

    def evaluate(self, fleet_view: FleetView, current_time: float) -> Optional[ScalingCommand]:
        """Decide on evaluation ticks; every other tick is a no-op."""
        if not self.is_evaluation_tick(current_time):
            return None
        self.evaluations += 1
        return self.decide(fleet_view)

    def apply(self, command: ScalingCommand, current_time: float) -> None:
        """Forward a command to the broker."""
        if isinstance(command, ProvisionVm):
            self.broker.submit_vm(command.spec)
        else:
            self.broker.destroy_vm(command.vm_id)
        self.scaling_history.append((current_time, command))

    def on_clock_tick(self, event: SimulationEvent) -> Optional[ScalingCommand]:
        current_time = event.timestamp
        if not self.is_evaluation_tick(current_time):
            return None
        command = self.evaluate(self.broker.fleet_view(), current_time)
        if command is not None:
            self.apply(command, current_time)
        return command

    __call__ = on_clock_tick

    @property
    def scale_up_events(self) -> int:
        return sum(1 for _, cmd in self.scaling_history if cmd.action == ScalingAction.SCALE_UP)

    @property
    def scale_down_events(self) -> int:
        return sum(1 for _, cmd in self.scaling_history if cmd.action == ScalingAction.SCALE_DOWN)
