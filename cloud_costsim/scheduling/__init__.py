"""Autoscaling policies."""

from .autoscaling import (
    AutoscalingController,
    ProvisionVm,
    RetireVm,
    ScalingAction,
    ScalingCommand,
    ScalingPolicy,
    average_utilization,
)

__all__ = [
    "AutoscalingController",
    "ProvisionVm",
    "RetireVm",
    "ScalingAction",
    "ScalingCommand",
    "ScalingPolicy",
    "average_utilization",
]
