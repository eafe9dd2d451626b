"""
Test Result Reporting
=====================
Unit tests for ResultReporter and report formatting.
"""

import pytest

from cloud_costsim.errors import SubstrateInconsistency
from cloud_costsim.evaluation import ResultReporter, format_report
from cloud_costsim.monitoring import CostState


class TestResultReporter:
    """Test cases for ResultReporter.summarize."""

    def test_nothing_finished_gives_zero_rate(self, make_fleet):
        """No finished workloads must not divide by zero."""
        report = ResultReporter().summarize(CostState(), [], make_fleet([0.0]))

        assert report.total_finished == 0
        assert report.sla_violations == 0
        assert report.sla_violation_rate == 0.0
        assert report.avg_execution_time == 0.0

    def test_workloads_sorted_by_finish_time(self, make_fleet, make_finished):
        workloads = [
            make_finished(0, finish_time=5.0),
            make_finished(1, finish_time=1.0),
            make_finished(2, finish_time=3.0),
        ]

        report = ResultReporter().summarize(CostState(), workloads, make_fleet([0.0]))

        assert [wl.workload_id for wl in report.finished_workloads] == [1, 2, 0]
        assert [wl.workload_id for wl in workloads] == [0, 1, 2]

    def test_violation_rate_and_execution_time(self, make_fleet, make_finished):
        workloads = [
            make_finished(0, finish_time=1.0),
            make_finished(1, finish_time=2.0),
            make_finished(2, finish_time=4.0, start_time=1.0),
            make_finished(3, finish_time=0.5),
        ]

        report = ResultReporter().summarize(CostState(), workloads, make_fleet([0.0]))

        assert report.total_finished == 4
        assert report.sla_violations == 2
        assert report.sla_violation_rate == pytest.approx(0.5)
        assert report.avg_execution_time == pytest.approx((1.0 + 2.0 + 3.0 + 0.5) / 4)

    def test_costs_and_hosts_reported(self, make_fleet):
        state = CostState(energy_cost_accumulated=1.25, sla_cost_accumulated=0.30)
        fleet = make_fleet([1.0, 0.5, 0.0], failed=[2])

        report = ResultReporter().summarize(state, [], fleet, scale_up_events=2,
                                            scale_down_events=1, simulation_time=42.0)

        assert report.total_energy_cost == 1.25
        assert report.total_sla_cost == 0.30
        assert report.total_cost == pytest.approx(1.55)
        assert [h.power_watts for h in report.hosts] == pytest.approx([150.0, 100.0, 50.0])
        assert report.hosts[2].is_failed
        assert (report.scale_up_events, report.scale_down_events) == (2, 1)
        assert report.simulation_time == 42.0

    def test_inconsistencies_become_warnings(self, make_fleet):
        issue = SubstrateInconsistency(20.0, "destroy_vm", "7", "VM is not known to the broker")

        report = ResultReporter().summarize(CostState(), [], make_fleet([0.0]),
                                            inconsistencies=[issue])

        assert report.warnings == ("[20.0s] destroy_vm 7: VM is not known to the broker",)

    def test_to_dict_sections(self, make_fleet, make_finished):
        report = ResultReporter().summarize(
            CostState(0.5, 0.1), [make_finished(0, finish_time=2.0)], make_fleet([0.4])
        )

        data = report.to_dict()

        assert set(data) == {"summary", "cost", "sla", "scaling", "hosts", "workloads", "warnings"}
        assert data["cost"]["total_cost"] == pytest.approx(0.6)
        assert data["workloads"][0]["sla_violated"] is True
        assert data["hosts"][0]["cpu_utilization"] == 0.4


class TestFormatReport:
    """Test cases for format_report."""

    def test_contains_sections(self, make_fleet):
        issue = SubstrateInconsistency(11.0, "create_vm", "5", "no host can accommodate the VM")
        report = ResultReporter().summarize(CostState(0.5, 0.2), [], make_fleet([1.0]),
                                            inconsistencies=[issue])

        text = format_report(report)

        assert "FINAL RESULTS" in text
        assert "Total Energy Cost:         $0.50" in text
        assert "Total Operational Cost:    $0.70" in text
        assert "Host 0: CPU 100.0% | Power 150.0W" in text
        assert "Warnings:" in text
        assert "create_vm 5" in text
