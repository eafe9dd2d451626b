"""Shared fixtures for the cloud_costsim test suite."""

from pathlib import Path
from typing import List, Sequence

import pytest

from cloud_costsim.core.resources import (
    FleetView,
    Host,
    HostStatus,
    LinearPowerModel,
    VirtualMachine,
    VmSpec,
    VmStatus,
)
from cloud_costsim.core.workload import Workload


CONFIGS_DIR = Path(__file__).resolve().parent.parent / "configs"


@pytest.fixture
def power_model() -> LinearPowerModel:
    return LinearPowerModel(max_power=150.0, idle_power=50.0)


@pytest.fixture
def make_fleet(power_model):
    """Factory for FleetView snapshots from host utilizations and VM idleness."""

    def _make(
        utilizations: Sequence[float],
        vm_busy: Sequence[bool] = (),
        failed: Sequence[int] = (),
    ) -> FleetView:
        hosts = tuple(
            HostStatus(host_id=i, cpu_utilization=u, is_failed=i in failed,
                       power_model=power_model)
            for i, u in enumerate(utilizations)
        )
        vms = tuple(VmStatus(vm_id=i, has_active_work=busy) for i, busy in enumerate(vm_busy))
        return FleetView(hosts=hosts, vms=vms)

    return _make


@pytest.fixture
def make_hosts(power_model):
    def _make(count: int = 2, pes: int = 4, mips: float = 1000.0) -> List[Host]:
        return [Host(host_id=i, pes=pes, mips=mips, power_model=power_model)
                for i in range(count)]

    return _make


def finished_workload(workload_id: int, finish_time: float, start_time: float = 0.0,
                      length: float = 1000.0, vm_mips: float = 1000.0) -> Workload:
    """A workload already finished on a VM; late when finish > start + length / mips."""
    workload = Workload(workload_id=workload_id, length=length)
    workload.vm = VirtualMachine(workload_id, VmSpec(mips=vm_mips, pes=1))
    workload.start_time = start_time
    workload.finish_time = finish_time
    workload.executed_length = length
    return workload


@pytest.fixture
def configs_dir() -> Path:
    return CONFIGS_DIR


@pytest.fixture
def make_finished():
    return finished_workload
