"""Workload models and generation."""

from typing import List, Optional
from enum import Enum
import numpy as np
from loguru import logger

from .resources import VirtualMachine


class WorkloadPriority(Enum):
    """Workload priority levels (lower value is more urgent)."""
    HIGH = 1
    NORMAL = 2


class Workload:
    """A unit of work (length in MI per PE) executed on a VM."""

    def __init__(
        self,
        workload_id: int,
        length: float,
        pes: int = 1,
        cpu_utilization: float = 1.0,
        submission_delay: float = 0.0,
        priority: WorkloadPriority = WorkloadPriority.NORMAL,
    ):
        if length <= 0:
            raise ValueError("length must be positive")
        if pes < 1:
            raise ValueError("pes must be >= 1")
        if not 0.0 < cpu_utilization <= 1.0:
            raise ValueError("cpu_utilization must be in (0, 1]")
        if submission_delay < 0:
            raise ValueError("submission_delay must be non-negative")

        self.workload_id = workload_id
        self.length = length
        self.pes = pes
        self.cpu_utilization = cpu_utilization
        self.submission_delay = submission_delay
        self.priority = priority

        # Execution tracking
        self.vm: Optional[VirtualMachine] = None
        self.start_time: Optional[float] = None
        self.finish_time: Optional[float] = None
        self.last_update_time: Optional[float] = None
        self.executed_length: float = 0.0

        logger.debug(f"Workload {workload_id} created: length {length:.0f} MI, "
                    f"{pes} PEs, utilization {cpu_utilization:.1f}, "
                    f"delay {submission_delay:.1f}s")

    @property
    def is_finished(self) -> bool:
        return self.finish_time is not None

    @property
    def remaining_length(self) -> float:
        return max(0.0, self.length - self.executed_length)

    def start_execution(self, vm: VirtualMachine, current_time: float) -> None:
        """Bind to a VM; the first binding fixes the start time."""
        self.vm = vm
        vm.workloads.append(self)
        if self.start_time is None:
            self.start_time = current_time
        self.last_update_time = current_time
        logger.debug(f"Workload {self.workload_id} bound to VM {vm.vm_id} at {current_time:.2f}s")

    def advance(self, current_time: float, rate: Optional[float] = None) -> bool:
        """Progress execution up to current_time. Returns True on completion.

        rate (MI/s) defaults to the VM's current execution rate.
        """
        if self.is_finished or self.vm is None or self.last_update_time is None:
            return False

        elapsed = current_time - self.last_update_time
        if elapsed <= 0:
            return False

        if rate is None:
            rate = self.vm.execution_rate(self)
        if rate > 0 and rate * elapsed >= self.remaining_length:
            self.finish_time = self.last_update_time + self.remaining_length / rate
            self.executed_length = self.length
            self.last_update_time = current_time
            logger.info(f"Workload {self.workload_id} finished at {self.finish_time:.2f}s "
                       f"on VM {self.vm.vm_id}")
            return True

        self.executed_length += rate * elapsed
        self.last_update_time = current_time
        return False

    @property
    def expected_finish_time(self) -> Optional[float]:
        """Start time plus length at the VM's full processing rate."""
        if self.start_time is None or self.vm is None:
            return None
        return self.start_time + self.length / self.vm.mips

    def is_sla_violated(self) -> bool:
        """True once finished later than its expected finish time."""
        if not self.is_finished:
            return False
        expected = self.expected_finish_time
        return expected is not None and self.finish_time > expected


class WorkloadGenerator:
    """Generates workload batches for a simulation run."""

    def __init__(self, random_seed: int = 42):
        self.random_seed = random_seed
        self.rng = np.random.default_rng(random_seed)
        self.workload_counter = 0
        logger.info(f"WorkloadGenerator initialized with seed {random_seed}")

    def _next_id(self) -> int:
        workload_id = self.workload_counter
        self.workload_counter += 1
        return workload_id

    def generate_dynamic_workloads(
        self,
        count: int,
        base_length: float = 10000.0,
        length_step: float = 500.0,
    ) -> List[Workload]:
        """Staggered mix: every fifth workload is high priority and arrives later."""
        workloads = []
        for i in range(count):
            high_priority = i % 5 == 0
            workloads.append(Workload(
                workload_id=self._next_id(),
                length=base_length + i * length_step,
                pes=2 if i % 4 == 0 else 1,
                cpu_utilization=0.4 + (i % 3) * 0.2,
                submission_delay=i * 0.5 if high_priority else i * 0.2,
                priority=WorkloadPriority.HIGH if high_priority else WorkloadPriority.NORMAL,
            ))

        logger.info(f"Generated {len(workloads)} dynamic workloads")
        return workloads

    def generate_random_workloads(
        self,
        count: int,
        base_length: float = 10000.0,
        length_std: float = 2500.0,
        arrival_rate: float = 1.0,
    ) -> List[Workload]:
        """Poisson arrivals with normally distributed lengths."""
        workloads = []
        current_time = 0.0

        for _ in range(count):
            length = max(1000.0, float(self.rng.normal(base_length, length_std)))
            pes = int(self.rng.choice([1, 2], p=[0.75, 0.25]))
            cpu_utilization = float(self.rng.choice([0.4, 0.6, 0.8, 1.0]))
            high_priority = bool(self.rng.random() < 0.2)

            workloads.append(Workload(
                workload_id=self._next_id(),
                length=length,
                pes=pes,
                cpu_utilization=cpu_utilization,
                submission_delay=current_time,
                priority=WorkloadPriority.HIGH if high_priority else WorkloadPriority.NORMAL,
            ))
            current_time += float(self.rng.exponential(1.0 / arrival_rate))

        logger.info(f"Generated {len(workloads)} random workloads over {current_time:.1f}s")
        return workloads
