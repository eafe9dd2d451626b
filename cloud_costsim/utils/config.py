"""Configuration management utilities."""

from typing import Dict, Any, Optional
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
import yaml
import json
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field
from loguru import logger

from ..core.resources import VmSpec
from ..core.simulator import SimulationConfig
from ..errors import ConfigurationError
from ..evaluation.report import Report
from ..monitoring.accounting import CostPolicy
from ..scheduling.autoscaling import ScalingPolicy


WORKLOAD_PATTERNS = ("dynamic", "random")

SECTION_KEYS = {
    'simulation': {f.name for f in fields(SimulationConfig)},
    'infrastructure': {
        'host_count', 'host_pes', 'host_mips', 'host_ram', 'host_bw',
        'host_storage', 'max_power', 'idle_power', 'initial_vm_count', 'initial_vm',
    },
    'workloads': {'count', 'pattern', 'base_length', 'length_step', 'length_std',
                  'arrival_rate'},
    'autoscaling': {
        'evaluation_interval', 'scale_up_threshold', 'scale_down_threshold',
        'min_fleet_size', 'max_fleet_size', 'new_vm',
    },
    'cost': {'energy_cost_per_wh', 'sla_penalty', 'log_every_n_ticks'},
    'experiment': None,
}
VM_SPEC_KEYS = {'mips', 'pes', 'ram', 'bw', 'size'}


@dataclass
class InfrastructureConfig:
    """Datacenter layout: homogeneous hosts plus the initial VM fleet."""
    host_count: int = 8
    host_pes: int = 4
    host_mips: float = 5000.0
    host_ram: int = 262144  # MB
    host_bw: int = 160000000
    host_storage: int = 80000000
    max_power: float = 150.0  # W
    idle_power: float = 50.0  # W
    initial_vm_count: int = 5
    initial_vm_spec: VmSpec = field(
        default_factory=lambda: VmSpec(mips=2000, pes=2, ram=32768, bw=8000, size=20000)
    )


@dataclass
class WorkloadConfig:
    """Workload batch submitted at simulation start."""
    count: int = 8
    pattern: str = "dynamic"
    base_length: float = 10000.0  # MI
    length_step: float = 500.0
    length_std: float = 2500.0
    arrival_rate: float = 1.0  # workloads per second


class Config(BaseModel):
    """Main configuration class."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    infrastructure: InfrastructureConfig = Field(default_factory=InfrastructureConfig)
    workloads: WorkloadConfig = Field(default_factory=WorkloadConfig)
    autoscaling: ScalingPolicy = Field(default_factory=ScalingPolicy)
    cost: CostPolicy = Field(default_factory=CostPolicy)

    # Experiment metadata
    experiment: Dict[str, Any] = Field(default_factory=dict)


def _check_keys(section: str, data: Any, allowed: set) -> None:
    """Reject misspelled or unknown keys instead of silently ignoring them."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"Section '{section}' must be a mapping, got {type(data).__name__}")
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) in '{section}': {unknown}. Valid keys: {sorted(allowed)}"
        )


def _vm_spec(data: Optional[Dict[str, Any]], default: VmSpec) -> VmSpec:
    if not data:
        return default
    return VmSpec(
        mips=data.get('mips', default.mips),
        pes=data.get('pes', default.pes),
        ram=data.get('ram', default.ram),
        bw=data.get('bw', default.bw),
        size=data.get('size', default.size),
    )


def config_from_dict(config_data: Dict[str, Any]) -> Config:
    """Build a validated Config from the file layout; missing keys use defaults."""
    _check_keys('configuration', config_data, set(SECTION_KEYS))
    for section, allowed in SECTION_KEYS.items():
        if allowed is not None and config_data.get(section):
            _check_keys(section, config_data[section], allowed)
    for section, key in (('infrastructure', 'initial_vm'), ('autoscaling', 'new_vm')):
        spec_data = (config_data.get(section) or {}).get(key)
        if spec_data:
            _check_keys(f"{section}.{key}", spec_data, VM_SPEC_KEYS)

    sim_data = config_data.get('simulation') or {}
    infra_data = config_data.get('infrastructure') or {}
    workload_data = config_data.get('workloads') or {}
    scaling_data = config_data.get('autoscaling') or {}
    cost_data = config_data.get('cost') or {}

    try:
        sim_config = SimulationConfig(
            scheduling_interval=sim_data.get('scheduling_interval', 1.0),
            max_duration=sim_data.get('max_duration', 3600.0),
            random_seed=sim_data.get('random_seed', 42),
            enable_failures=sim_data.get('enable_failures', False),
            host_failure_rate=sim_data.get('host_failure_rate', 0.001),
            host_recovery_time=sim_data.get('host_recovery_time', 300.0),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid simulation section: {e}") from e

    defaults = InfrastructureConfig()
    infrastructure = InfrastructureConfig(
        host_count=infra_data.get('host_count', defaults.host_count),
        host_pes=infra_data.get('host_pes', defaults.host_pes),
        host_mips=infra_data.get('host_mips', defaults.host_mips),
        host_ram=infra_data.get('host_ram', defaults.host_ram),
        host_bw=infra_data.get('host_bw', defaults.host_bw),
        host_storage=infra_data.get('host_storage', defaults.host_storage),
        max_power=infra_data.get('max_power', defaults.max_power),
        idle_power=infra_data.get('idle_power', defaults.idle_power),
        initial_vm_count=infra_data.get('initial_vm_count', defaults.initial_vm_count),
        initial_vm_spec=_vm_spec(infra_data.get('initial_vm'), defaults.initial_vm_spec),
    )
    if infrastructure.host_count < 0 or infrastructure.initial_vm_count < 0:
        raise ConfigurationError("host_count and initial_vm_count must be non-negative")

    workloads = WorkloadConfig(**{**asdict(WorkloadConfig()), **workload_data})
    if workloads.pattern not in WORKLOAD_PATTERNS:
        raise ConfigurationError(
            f"Invalid workload pattern: '{workloads.pattern}'. Must be one of {list(WORKLOAD_PATTERNS)}"
        )
    if workloads.count < 0:
        raise ConfigurationError("workloads.count must be non-negative")

    scaling_defaults = ScalingPolicy()
    autoscaling = ScalingPolicy(
        evaluation_interval_seconds=scaling_data.get('evaluation_interval', 10.0),
        scale_up_utilization_threshold=scaling_data.get('scale_up_threshold', 0.7),
        scale_down_utilization_threshold=scaling_data.get('scale_down_threshold', 0.3),
        minimum_fleet_size=scaling_data.get(
            'min_fleet_size', infrastructure.initial_vm_count
        ),
        new_vm_spec=_vm_spec(scaling_data.get('new_vm'), scaling_defaults.new_vm_spec),
        max_fleet_size=scaling_data.get('max_fleet_size'),
    )
    autoscaling.validate()

    cost = CostPolicy(
        energy_unit_cost_per_wh=cost_data.get('energy_cost_per_wh', 0.15),
        sla_penalty_per_violation=cost_data.get('sla_penalty', 0.10),
        tick_duration_seconds=sim_config.scheduling_interval,
        log_every_n_ticks=cost_data.get('log_every_n_ticks', 5),
    )
    cost.validate()

    return Config(
        simulation=sim_config,
        infrastructure=infrastructure,
        workloads=workloads,
        autoscaling=autoscaling,
        cost=cost,
        experiment=config_data.get('experiment') or {},
    )


def load_config(config_path: Path) -> Config:
    """Load configuration from a YAML or JSON file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, 'r') as f:
        if config_path.suffix.lower() in ['.yaml', '.yml']:
            config_data = yaml.safe_load(f)
        elif config_path.suffix.lower() == '.json':
            config_data = json.load(f)
        else:
            raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    config = config_from_dict(config_data or {})

    logger.info(f"Configuration loaded: {config.infrastructure.host_count} hosts, "
               f"{config.infrastructure.initial_vm_count} initial VMs, "
               f"{config.workloads.count} workloads")
    return config


def config_to_dict(config: Config) -> Dict[str, Any]:
    """Inverse of config_from_dict."""
    infra = config.infrastructure
    policy = config.autoscaling
    return {
        'simulation': asdict(config.simulation),
        'infrastructure': {
            'host_count': infra.host_count,
            'host_pes': infra.host_pes,
            'host_mips': infra.host_mips,
            'host_ram': infra.host_ram,
            'host_bw': infra.host_bw,
            'host_storage': infra.host_storage,
            'max_power': infra.max_power,
            'idle_power': infra.idle_power,
            'initial_vm_count': infra.initial_vm_count,
            'initial_vm': asdict(infra.initial_vm_spec),
        },
        'workloads': asdict(config.workloads),
        'autoscaling': {
            'evaluation_interval': policy.evaluation_interval_seconds,
            'scale_up_threshold': policy.scale_up_utilization_threshold,
            'scale_down_threshold': policy.scale_down_utilization_threshold,
            'min_fleet_size': policy.minimum_fleet_size,
            'max_fleet_size': policy.max_fleet_size,
            'new_vm': asdict(policy.new_vm_spec),
        },
        'cost': {
            'energy_cost_per_wh': config.cost.energy_unit_cost_per_wh,
            'sla_penalty': config.cost.sla_penalty_per_violation,
            'log_every_n_ticks': config.cost.log_every_n_ticks,
        },
        'experiment': config.experiment,
    }


def save_config(config: Config, config_path: Path) -> None:
    """Save configuration to file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config_to_dict(config)

    with open(config_path, 'w') as f:
        if config_path.suffix.lower() in ['.yaml', '.yml']:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)
        elif config_path.suffix.lower() == '.json':
            json.dump(config_dict, f, indent=2)
        else:
            raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    logger.info(f"Configuration saved to {config_path}")


def save_results(report: Report, timeline: pd.DataFrame, output_dir: Path) -> None:
    """Save the final report and the power/cost time series."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    results_file = output_dir / "report.json"
    with open(results_file, 'w') as f:
        json.dump(report.to_dict(), f, indent=2, default=str)
    logger.info(f"Results saved to {results_file}")

    timeline_file = output_dir / "timeline.csv"
    timeline.to_csv(timeline_file, index=False)
    logger.info(f"Time series saved to {timeline_file}")


def create_default_configs(configs_dir: Path = Path("configs")) -> Path:
    """Create the default configuration file; returns its path."""
    configs_dir = Path(configs_dir)
    configs_dir.mkdir(parents=True, exist_ok=True)

    baseline_config = Config(
        experiment={
            'name': 'cost_aware_baseline',
            'description': 'Cost-aware allocation with reactive VM autoscaling',
        }
    )
    path = configs_dir / "baseline.yaml"
    save_config(baseline_config, path)

    logger.info(f"Default configuration files created in {configs_dir}/ directory")
    return path
