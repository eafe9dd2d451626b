"""Cloud resource models: power models, Hosts, VMs and read-only fleet snapshots."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
from loguru import logger

if TYPE_CHECKING:
    from .workload import Workload


class ResourceState(Enum):
    """Resource state enumeration."""
    AVAILABLE = "available"
    ALLOCATED = "allocated"
    FAILED = "failed"
    DESTROYED = "destroyed"


@dataclass(frozen=True)
class VmSpec:
    """Virtual machine specification (MIPS are per PE)."""
    mips: float
    pes: int
    ram: int = 32768
    bw: int = 8000
    size: int = 20000


class PowerModel(ABC):
    """Maps a host CPU utilization fraction to power draw in watts."""

    @abstractmethod
    def get_power(self, utilization: float) -> float:
        """Return power draw in watts for a utilization fraction in [0, 1]."""
        pass

    def __call__(self, utilization: float) -> float:
        return self.get_power(utilization)


class LinearPowerModel(PowerModel):
    """Power linearly interpolated between idle and max power."""

    def __init__(self, max_power: float, idle_power: float):
        if idle_power < 0:
            raise ValueError("idle_power must be non-negative")
        if max_power < idle_power:
            raise ValueError("max_power must be >= idle_power")
        self.max_power = max_power
        self.idle_power = idle_power

    def get_power(self, utilization: float) -> float:
        if not 0.0 <= utilization <= 1.0:
            raise ValueError(f"Utilization must be between 0 and 1, got {utilization}")
        return self.idle_power + (self.max_power - self.idle_power) * utilization

    def __repr__(self) -> str:
        return f"LinearPowerModel(max_power={self.max_power}, idle_power={self.idle_power})"


@dataclass(frozen=True)
class HostStatus:
    """Snapshot of a host as seen by monitoring and autoscaling."""
    host_id: int
    cpu_utilization: float
    is_failed: bool
    power_model: PowerModel

    @property
    def power_watts(self) -> float:
        return self.power_model.get_power(self.cpu_utilization)


@dataclass(frozen=True)
class VmStatus:
    """Snapshot of a created VM."""
    vm_id: int
    has_active_work: bool


@dataclass(frozen=True)
class FleetView:
    """Read-only view of hosts and created VMs, in substrate order."""
    hosts: Tuple[HostStatus, ...] = ()
    vms: Tuple[VmStatus, ...] = ()

    @property
    def fleet_size(self) -> int:
        return len(self.vms)

    def active_hosts(self) -> List[HostStatus]:
        """Hosts that have not failed."""
        return [host for host in self.hosts if not host.is_failed]


class Host:
    """Physical host in the datacenter."""

    def __init__(
        self,
        host_id: int,
        pes: int,
        mips: float,
        power_model: PowerModel,
        ram: int = 262144,
        bw: int = 160000000,
        storage: int = 80000000,
    ):
        self.host_id = host_id
        self.pes = pes
        self.mips = mips
        self.ram = ram
        self.bw = bw
        self.storage = storage
        self.power_model = power_model
        self.state = ResourceState.AVAILABLE

        # Resource tracking
        self.allocated_pes = 0
        self.allocated_ram = 0

        # VMs placed on this host
        self.vms: Dict[int, "VirtualMachine"] = {}

        logger.info(f"Host {host_id} created with {pes} PEs x {mips:.0f} MIPS, "
                   f"{power_model!r}")

    @property
    def is_failed(self) -> bool:
        return self.state == ResourceState.FAILED

    @property
    def free_pes(self) -> int:
        return self.pes - self.allocated_pes

    @property
    def total_mips(self) -> float:
        return self.pes * self.mips

    def can_accommodate(self, spec: VmSpec) -> bool:
        """Check if host can accommodate a VM of the given spec."""
        return (
            not self.is_failed and
            self.free_pes >= spec.pes and
            spec.mips <= self.mips and
            self.ram - self.allocated_ram >= spec.ram
        )

    def allocate_resources(self, vm: "VirtualMachine") -> bool:
        """Place a VM on this host."""
        if not self.can_accommodate(vm.spec):
            return False

        self.allocated_pes += vm.spec.pes
        self.allocated_ram += vm.spec.ram
        self.vms[vm.vm_id] = vm

        logger.debug(f"Allocated {vm.spec.pes} PEs, {vm.spec.ram}MB "
                    f"on host {self.host_id} for VM {vm.vm_id}")
        return True

    def deallocate_resources(self, vm: "VirtualMachine") -> None:
        """Release the resources held by a VM."""
        if vm.vm_id not in self.vms:
            return
        del self.vms[vm.vm_id]

        # Ensure non-negative values
        self.allocated_pes = max(0, self.allocated_pes - vm.spec.pes)
        self.allocated_ram = max(0, self.allocated_ram - vm.spec.ram)

        logger.debug(f"Deallocated {vm.spec.pes} PEs from host {self.host_id}")

    def get_cpu_utilization(self) -> float:
        """Fraction of host MIPS currently consumed by its VMs."""
        if self.is_failed or self.total_mips <= 0:
            return 0.0
        used_mips = sum(vm.used_mips() for vm in self.vms.values())
        return min(used_mips / self.total_mips, 1.0)

    def get_power(self) -> float:
        return self.power_model.get_power(self.get_cpu_utilization())

    def status(self) -> HostStatus:
        return HostStatus(
            host_id=self.host_id,
            cpu_utilization=self.get_cpu_utilization(),
            is_failed=self.is_failed,
            power_model=self.power_model,
        )

    def fail(self) -> None:
        """Simulate host failure."""
        self.state = ResourceState.FAILED
        logger.warning(f"Host {self.host_id} failed")

    def recover(self) -> None:
        """Simulate host recovery."""
        self.state = ResourceState.AVAILABLE
        logger.info(f"Host {self.host_id} recovered")


class VirtualMachine:
    """Virtual Machine running workloads time-shared on its PEs."""

    def __init__(self, vm_id: int, spec: VmSpec):
        self.vm_id = vm_id
        self.spec = spec
        self.host: Optional[Host] = None
        self.state = ResourceState.AVAILABLE

        # Workloads bound to this VM
        self.workloads: List["Workload"] = []

    @property
    def mips(self) -> float:
        return self.spec.mips

    @property
    def pes(self) -> int:
        return self.spec.pes

    @property
    def is_running(self) -> bool:
        return self.state == ResourceState.ALLOCATED and self.host is not None

    def active_workloads(self) -> List["Workload"]:
        return [wl for wl in self.workloads if not wl.is_finished]

    @property
    def has_active_work(self) -> bool:
        return bool(self.active_workloads())

    def pe_share(self) -> float:
        """Fraction of its requested PEs each active workload receives."""
        requested = sum(wl.pes for wl in self.active_workloads())
        if requested <= self.pes:
            return 1.0
        return self.pes / requested

    def execution_rate(self, workload: "Workload") -> float:
        """MI per second, per PE, that a bound workload progresses at."""
        if not self.is_running or self.host.is_failed:
            return 0.0
        return self.mips * workload.cpu_utilization * self.pe_share()

    def used_mips(self) -> float:
        return sum(wl.pes * self.execution_rate(wl) for wl in self.active_workloads())

    def start(self, host: Host) -> bool:
        """Start the VM on a host."""
        if host.allocate_resources(self):
            self.host = host
            self.state = ResourceState.ALLOCATED
            logger.info(f"VM {self.vm_id} started on host {host.host_id}")
            return True
        logger.error(f"Failed to start VM {self.vm_id} - insufficient resources")
        return False

    def stop(self) -> List["Workload"]:
        """Stop the VM and hand back any unfinished workloads."""
        unfinished = self.active_workloads()
        if self.host is not None:
            self.host.deallocate_resources(self)
        self.state = ResourceState.DESTROYED
        self.workloads = []
        for workload in unfinished:
            workload.vm = None
        logger.info(f"VM {self.vm_id} stopped")
        return unfinished

    def status(self) -> VmStatus:
        return VmStatus(vm_id=self.vm_id, has_active_work=self.has_active_work)
