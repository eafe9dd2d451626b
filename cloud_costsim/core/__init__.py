"""Simulation substrate: resources, workloads, broker and clock."""

from .simulator import CloudSimulator, SimulationConfig
from .resources import (
    FleetView,
    Host,
    HostStatus,
    LinearPowerModel,
    PowerModel,
    VirtualMachine,
    VmSpec,
    VmStatus,
)
from .workload import Workload, WorkloadGenerator, WorkloadPriority
from .broker import Broker
from .events import EventBus, SimulationEvent, EventType

__all__ = [
    "CloudSimulator",
    "SimulationConfig",
    "FleetView",
    "Host",
    "HostStatus",
    "LinearPowerModel",
    "PowerModel",
    "VirtualMachine",
    "VmSpec",
    "VmStatus",
    "Workload",
    "WorkloadGenerator",
    "WorkloadPriority",
    "Broker",
    "EventBus",
    "SimulationEvent",
    "EventType",
]
