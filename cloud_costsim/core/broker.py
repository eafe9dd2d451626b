"""Datacenter broker: the sole owner of VM lifecycle and workload binding."""

from typing import Dict, List, Optional, Sequence, Set, Tuple
from loguru import logger

from .resources import FleetView, Host, ResourceState, VirtualMachine, VmSpec
from .workload import Workload
from ..errors import SubstrateInconsistency


class Broker:
    """Accepts VM and workload submissions on behalf of the user.

    VM create/destroy commands are queued and applied by the simulator at the
    start of the next clock tick, so a command issued while handling tick T
    is visible from tick T+1 onwards.
    """

    def __init__(self, hosts: Sequence[Host]):
        self.hosts: List[Host] = list(hosts)
        self.vm_counter = 0

        self._pending_commands: List[Tuple[str, object]] = []
        self._created_vms: Dict[int, VirtualMachine] = {}

        self._submitted_workloads: List[Workload] = []
        self._waiting_workloads: List[Workload] = []
        self._created_workloads: List[Workload] = []
        self._finished_workloads: List[Workload] = []
        self._next_vm_index = 0
        self._retiring_vm_ids: Set[int] = set()

        self.inconsistencies: List[SubstrateInconsistency] = []

        logger.info(f"Broker initialized with {len(self.hosts)} hosts")

    # VM commands

    def submit_vm(self, spec: VmSpec) -> int:
        """Request a new VM; returns the id it will be created with."""
        vm = VirtualMachine(self.vm_counter, spec)
        self.vm_counter += 1
        self._pending_commands.append(("create", vm))
        logger.debug(f"VM {vm.vm_id} submitted ({spec.pes} PEs x {spec.mips:.0f} MIPS)")
        return vm.vm_id

    def submit_vm_list(self, specs: Sequence[VmSpec]) -> List[int]:
        return [self.submit_vm(spec) for spec in specs]

    def destroy_vm(self, vm_id: int) -> None:
        """Request destruction of a created VM.

        The VM takes no new work from now on, so a VM retired while idle is
        still idle when the command is applied.
        """
        self._retiring_vm_ids.add(vm_id)
        self._pending_commands.append(("destroy", vm_id))
        logger.debug(f"VM {vm_id} destruction requested")

    @property
    def has_pending_commands(self) -> bool:
        return bool(self._pending_commands)

    def apply_pending_commands(self, current_time: float) -> None:
        """Apply queued VM commands in submission order."""
        commands, self._pending_commands = self._pending_commands, []
        for command, payload in commands:
            if command == "create":
                self._create_vm(payload, current_time)
            else:
                self._destroy_vm(payload, current_time)

    def _select_host(self, spec: VmSpec) -> Optional[Host]:
        """Host with the most free PEs; ties go to the first in order."""
        candidates = [host for host in self.hosts if host.can_accommodate(spec)]
        if not candidates:
            return None
        return max(candidates, key=lambda host: host.free_pes)

    def _create_vm(self, vm: VirtualMachine, current_time: float) -> None:
        host = self._select_host(vm.spec)
        if host is None or not vm.start(host):
            self._record_inconsistency(current_time, "create_vm", vm.vm_id,
                                       "no host can accommodate the VM")
            return
        self._created_vms[vm.vm_id] = vm

    def _destroy_vm(self, vm_id: int, current_time: float) -> None:
        self._retiring_vm_ids.discard(vm_id)
        vm = self._created_vms.get(vm_id)
        if vm is None:
            self._record_inconsistency(current_time, "destroy_vm", vm_id,
                                       "VM is not known to the broker")
            return

        self._advance_vm(vm, current_time)
        del self._created_vms[vm_id]

        # Unfinished work goes back to the queue
        requeued = vm.stop()
        if requeued:
            logger.warning(f"VM {vm_id} destroyed with {len(requeued)} unfinished workloads")
            self._waiting_workloads.extend(requeued)

    def _record_inconsistency(self, timestamp: float, command: str,
                              resource_id: int, reason: str) -> None:
        inconsistency = SubstrateInconsistency(timestamp, command, str(resource_id), reason)
        self.inconsistencies.append(inconsistency)
        logger.warning(f"Substrate inconsistency: {inconsistency}")

    # Workloads

    def submit_workload(self, workload: Workload) -> None:
        self._submitted_workloads.append(workload)

    def submit_workload_list(self, workloads: Sequence[Workload]) -> None:
        for workload in workloads:
            self.submit_workload(workload)

    def get_submitted_workload_list(self) -> List[Workload]:
        return list(self._submitted_workloads)

    def workload_arrived(self, workload: Workload, current_time: float) -> None:
        """Bind an arriving workload now, or queue it until a VM exists."""
        self._created_workloads.append(workload)
        logger.debug(f"Workload {workload.workload_id} arrived at {current_time:.2f}s")
        if not self._bind(workload, current_time):
            self._waiting_workloads.append(workload)

    def bind_waiting_workloads(self, current_time: float) -> None:
        waiting, self._waiting_workloads = self._waiting_workloads, []
        for workload in waiting:
            if not self._bind(workload, current_time):
                self._waiting_workloads.append(workload)

    def _bind(self, workload: Workload, current_time: float) -> bool:
        """Round-robin over running VMs on healthy hosts that are not being retired."""
        vms = [
            vm for vm in self._created_vms.values()
            if vm.is_running and not vm.host.is_failed and vm.vm_id not in self._retiring_vm_ids
        ]
        if not vms:
            return False
        vm = vms[self._next_vm_index % len(vms)]
        self._next_vm_index += 1

        # Bring co-located work up to date before the PE share changes
        self._advance_vm(vm, current_time)
        workload.start_execution(vm, current_time)
        return True

    def advance(self, current_time: float) -> None:
        """Progress every bound workload up to current_time."""
        for vm in list(self._created_vms.values()):
            self._advance_vm(vm, current_time)

    def _advance_vm(self, vm: VirtualMachine, current_time: float) -> None:
        # Rates are fixed for the whole interval, whatever finishes inside it
        rates = [(workload, vm.execution_rate(workload)) for workload in vm.active_workloads()]
        for workload, rate in rates:
            if workload.advance(current_time, rate):
                self._finished_workloads.append(workload)

    def all_workloads_finished(self) -> bool:
        return len(self._finished_workloads) == len(self._submitted_workloads)

    # Queries

    def get_vm(self, vm_id: int) -> Optional[VirtualMachine]:
        return self._created_vms.get(vm_id)

    def get_created_vm_list(self) -> List[VirtualMachine]:
        return [vm for vm in self._created_vms.values() if vm.state == ResourceState.ALLOCATED]

    def get_created_workload_list(self) -> List[Workload]:
        return list(self._created_workloads)

    def get_finished_workload_list(self) -> List[Workload]:
        return list(self._finished_workloads)

    def get_waiting_workload_list(self) -> List[Workload]:
        return list(self._waiting_workloads)

    def fleet_view(self) -> FleetView:
        """Snapshot of hosts and created VMs for monitoring and autoscaling."""
        return FleetView(
            hosts=tuple(host.status() for host in self.hosts),
            vms=tuple(vm.status() for vm in self.get_created_vm_list()),
        )
