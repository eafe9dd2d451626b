"""
Test Autoscaling
================
Unit tests for the reactive autoscaling controller.
"""

import pytest

from cloud_costsim.core.events import EventType, SimulationEvent
from cloud_costsim.core.resources import FleetView, VmSpec
from cloud_costsim.errors import ConfigurationError
from cloud_costsim.scheduling import (
    AutoscalingController,
    ProvisionVm,
    RetireVm,
    ScalingAction,
    ScalingPolicy,
    average_utilization,
)


class RecordingBroker:
    """Stands in for the broker: records commands and serves a fixed view."""

    def __init__(self, view: FleetView = FleetView()):
        self.view = view
        self.submitted = []
        self.destroyed = []

    def submit_vm(self, spec):
        self.submitted.append(spec)
        return len(self.submitted)

    def destroy_vm(self, vm_id):
        self.destroyed.append(vm_id)

    def fleet_view(self):
        return self.view


def tick(t: float) -> SimulationEvent:
    return SimulationEvent(timestamp=t, event_type=EventType.CLOCK_TICK, resource_id="clock")


class TestScalingPolicy:
    """Test cases for ScalingPolicy."""

    def test_default_policy(self):
        policy = ScalingPolicy()

        assert policy.evaluation_interval_seconds == 10.0
        assert policy.scale_up_utilization_threshold == 0.7
        assert policy.scale_down_utilization_threshold == 0.3
        assert policy.minimum_fleet_size == 5
        assert policy.new_vm_spec == VmSpec(mips=3000, pes=4, ram=42768, bw=18000, size=200000)
        assert policy.max_fleet_size is None

    def test_inverted_thresholds_rejected(self):
        policy = ScalingPolicy(scale_up_utilization_threshold=0.3,
                               scale_down_utilization_threshold=0.7)
        with pytest.raises(ConfigurationError, match="scale_down_utilization_threshold"):
            AutoscalingController(policy, RecordingBroker())

    def test_equal_thresholds_rejected(self):
        policy = ScalingPolicy(scale_up_utilization_threshold=0.5,
                               scale_down_utilization_threshold=0.5)
        with pytest.raises(ConfigurationError):
            policy.validate()

    def test_negative_minimum_fleet_rejected(self):
        with pytest.raises(ConfigurationError, match="minimum_fleet_size"):
            AutoscalingController(ScalingPolicy(minimum_fleet_size=-1), RecordingBroker())

    @pytest.mark.parametrize("kwargs", [
        {"evaluation_interval_seconds": 0.0},
        {"scale_up_utilization_threshold": 1.5},
        {"scale_down_utilization_threshold": -0.1},
        {"minimum_fleet_size": 5, "max_fleet_size": 4},
    ])
    def test_other_invalid_policies(self, kwargs):
        with pytest.raises(ConfigurationError):
            ScalingPolicy(**kwargs).validate()


class TestAverageUtilization:
    """Test cases for average_utilization."""

    def test_failed_hosts_excluded(self, make_fleet):
        assert average_utilization(make_fleet([0.9, 0.1], failed=[0])) == pytest.approx(0.1)

    def test_empty_fleet_is_zero(self, make_fleet):
        assert average_utilization(make_fleet([])) == 0.0
        assert average_utilization(make_fleet([0.9], failed=[0])) == 0.0


class TestAutoscalingController:
    """Test cases for AutoscalingController decisions."""

    def test_high_utilization_provisions_one_vm(self, make_fleet):
        """Eight hosts at 80% evaluated at t=10."""
        controller = AutoscalingController(ScalingPolicy(), RecordingBroker())
        fleet = make_fleet([0.8] * 8, vm_busy=[True] * 5)

        command = controller.evaluate(fleet, 10.0)

        assert command == ProvisionVm(ScalingPolicy().new_vm_spec)
        assert command.action == ScalingAction.SCALE_UP

    def test_minimum_fleet_size_respected(self, make_fleet):
        """Five idle VMs, three hosts at 10%, floor of five: nothing retired."""
        controller = AutoscalingController(ScalingPolicy(minimum_fleet_size=5), RecordingBroker())
        fleet = make_fleet([0.1] * 3, vm_busy=[False] * 5)

        assert controller.evaluate(fleet, 10.0) is None

    def test_retires_first_idle_vm(self, make_fleet):
        controller = AutoscalingController(ScalingPolicy(minimum_fleet_size=5), RecordingBroker())
        fleet = make_fleet([0.1] * 3, vm_busy=[True, False, True, False, True, True])

        command = controller.evaluate(fleet, 20.0)

        assert command == RetireVm(1)
        assert command.action == ScalingAction.SCALE_DOWN

    def test_no_retire_when_every_vm_is_busy(self, make_fleet):
        controller = AutoscalingController(ScalingPolicy(minimum_fleet_size=1), RecordingBroker())
        fleet = make_fleet([0.1] * 3, vm_busy=[True] * 3)

        assert controller.evaluate(fleet, 10.0) is None

    def test_empty_host_list_counts_as_idle(self, make_fleet):
        controller = AutoscalingController(ScalingPolicy(minimum_fleet_size=1), RecordingBroker())

        command = controller.evaluate(make_fleet([], vm_busy=[False, False]), 10.0)

        assert command == RetireVm(0)

    def test_between_thresholds_does_nothing(self, make_fleet):
        controller = AutoscalingController(ScalingPolicy(minimum_fleet_size=0), RecordingBroker())
        fleet = make_fleet([0.5] * 4, vm_busy=[False] * 4)

        assert controller.evaluate(fleet, 10.0) is None

    def test_scale_up_unbounded_by_default(self, make_fleet):
        controller = AutoscalingController(ScalingPolicy(), RecordingBroker())
        fleet = make_fleet([0.95] * 8, vm_busy=[True] * 200)

        assert isinstance(controller.evaluate(fleet, 10.0), ProvisionVm)

    def test_optional_fleet_ceiling(self, make_fleet):
        controller = AutoscalingController(ScalingPolicy(max_fleet_size=6), RecordingBroker())

        assert controller.evaluate(make_fleet([0.95] * 8, vm_busy=[True] * 6), 10.0) is None
        assert isinstance(controller.evaluate(make_fleet([0.95] * 8, vm_busy=[True] * 5), 20.0),
                          ProvisionVm)

    @pytest.mark.parametrize("t", [0.0, 1.0, 5.0, 9.0, 15.0, 21.0])
    def test_only_evaluates_on_cadence(self, make_fleet, t):
        controller = AutoscalingController(ScalingPolicy(), RecordingBroker())

        assert controller.evaluate(make_fleet([0.9] * 8, vm_busy=[True] * 5), t) is None
        assert controller.evaluations == 0

    @pytest.mark.parametrize("t", [10.0, 20.0, 30.0, 1000.0])
    def test_evaluation_ticks(self, t):
        controller = AutoscalingController(ScalingPolicy(), RecordingBroker())

        assert controller.is_evaluation_tick(t)

    def test_fractional_interval_cadence(self):
        controller = AutoscalingController(
            ScalingPolicy(evaluation_interval_seconds=0.5), RecordingBroker()
        )
        accumulated = sum([0.1] * 15)

        assert controller.is_evaluation_tick(accumulated)
        assert not controller.is_evaluation_tick(0.7)

    def test_never_retires_at_minimum_fleet(self, make_fleet):
        """Sweep utilization levels with the fleet at its floor."""
        controller = AutoscalingController(ScalingPolicy(minimum_fleet_size=3), RecordingBroker())
        for level in [i / 20 for i in range(21)]:
            command = controller.decide(make_fleet([level] * 4, vm_busy=[False] * 3))
            assert not isinstance(command, RetireVm)

    def test_at_most_one_command_per_evaluation(self, make_fleet):
        controller = AutoscalingController(ScalingPolicy(minimum_fleet_size=0), RecordingBroker())
        broker = controller.broker
        for step, level in enumerate([i / 10 for i in range(11)], start=1):
            controller.broker.view = make_fleet([level] * 4, vm_busy=[False] * 4)
            before = len(broker.submitted) + len(broker.destroyed)
            controller.on_clock_tick(tick(step * 10.0))
            assert len(broker.submitted) + len(broker.destroyed) - before <= 1


class TestClockTickIntegration:
    """Test cases for the tick callback forwarding commands to the broker."""

    def test_commands_forwarded_and_recorded(self, make_fleet):
        broker = RecordingBroker(make_fleet([0.9] * 2, vm_busy=[True] * 5))
        controller = AutoscalingController(ScalingPolicy(), broker)

        for t in range(1, 21):
            controller(tick(float(t)))

        assert len(broker.submitted) == 2
        assert controller.scale_up_events == 2
        assert controller.scale_down_events == 0
        assert [t for t, _ in controller.scaling_history] == [10.0, 20.0]

    def test_retire_forwarded_to_broker(self, make_fleet):
        broker = RecordingBroker(make_fleet([0.05] * 2, vm_busy=[True, True, False]))
        controller = AutoscalingController(ScalingPolicy(minimum_fleet_size=2), broker)

        command = controller.on_clock_tick(tick(10.0))

        assert command == RetireVm(2)
        assert broker.destroyed == [2]
        assert controller.scale_down_events == 1
