"""Wires the substrate, monitoring, autoscaling and reporting into one run."""

from dataclasses import dataclass, replace
from typing import List
from loguru import logger

from .core.resources import Host, LinearPowerModel
from .core.simulator import CloudSimulator
from .core.workload import Workload, WorkloadGenerator
from .evaluation.report import Report, ResultReporter
from .monitoring.accounting import CostAccountant
from .monitoring.monitor import MonitoringListener
from .monitoring.telemetry import TelemetrySampler
from .scheduling.autoscaling import AutoscalingController
from .utils.config import Config, InfrastructureConfig, WorkloadConfig


@dataclass
class ExperimentResult:
    report: Report
    accountant: CostAccountant
    controller: AutoscalingController
    simulator: CloudSimulator


def build_infrastructure(config: InfrastructureConfig) -> List[Host]:
    """Homogeneous hosts sharing one linear power model."""
    power_model = LinearPowerModel(max_power=config.max_power, idle_power=config.idle_power)
    return [
        Host(
            host_id=i,
            pes=config.host_pes,
            mips=config.host_mips,
            power_model=power_model,
            ram=config.host_ram,
            bw=config.host_bw,
            storage=config.host_storage,
        )
        for i in range(config.host_count)
    ]


def generate_workloads(config: WorkloadConfig, random_seed: int) -> List[Workload]:
    generator = WorkloadGenerator(random_seed=random_seed)
    if config.pattern == "random":
        return generator.generate_random_workloads(
            config.count,
            base_length=config.base_length,
            length_std=config.length_std,
            arrival_rate=config.arrival_rate,
        )
    return generator.generate_dynamic_workloads(
        config.count,
        base_length=config.base_length,
        length_step=config.length_step,
    )


def run_experiment(config: Config) -> ExperimentResult:
    """Run one simulation end to end and summarize it."""
    name = config.experiment.get('name', 'unnamed')
    logger.info(f"Running experiment '{name}'")

    # Policies are checked before anything is built
    config.autoscaling.validate()
    cost_policy = config.cost
    interval = config.simulation.scheduling_interval
    if cost_policy.tick_duration_seconds != interval:
        logger.info(f"Cost tick duration set to the {interval}s scheduling interval "
                    f"(was {cost_policy.tick_duration_seconds}s)")
        cost_policy = replace(cost_policy, tick_duration_seconds=interval)
    cost_policy.validate()

    hosts = build_infrastructure(config.infrastructure)
    simulator = CloudSimulator(config.simulation, hosts)
    broker = simulator.broker

    broker.submit_vm_list([config.infrastructure.initial_vm_spec] *
                          config.infrastructure.initial_vm_count)
    simulator.submit_workloads(generate_workloads(config.workloads,
                                                  config.simulation.random_seed))

    accountant = CostAccountant(cost_policy)
    monitor = MonitoringListener(TelemetrySampler(broker), accountant, broker.fleet_view)
    controller = AutoscalingController(config.autoscaling, broker)

    # Monitoring sees a tick before the autoscaler reacts to it
    simulator.add_on_clock_tick_listener(monitor)
    simulator.add_on_clock_tick_listener(controller)

    end_time = simulator.run()

    report = ResultReporter().summarize(
        accountant.state,
        broker.get_finished_workload_list(),
        broker.fleet_view(),
        inconsistencies=broker.inconsistencies,
        scale_up_events=controller.scale_up_events,
        scale_down_events=controller.scale_down_events,
        simulation_time=end_time,
    )
    return ExperimentResult(report=report, accountant=accountant,
                            controller=controller, simulator=simulator)
