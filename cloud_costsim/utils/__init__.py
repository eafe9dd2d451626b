"""Utility modules for the cost-aware simulator."""

from .config import (
    Config,
    InfrastructureConfig,
    WorkloadConfig,
    create_default_configs,
    load_config,
    save_config,
    save_results,
)

__all__ = [
    "Config",
    "InfrastructureConfig",
    "WorkloadConfig",
    "create_default_configs",
    "load_config",
    "save_config",
    "save_results",
]
