"""
Test CLI
========
Tests for the cloud-costsim command-line interface.
"""

import json

import yaml
from typer.testing import CliRunner

from cloud_costsim.cli import app

runner = CliRunner()


class TestSimulateCommand:
    """Test cases for `cloud-costsim simulate`."""

    def test_simulate_with_baseline_config(self, configs_dir, tmp_path):
        result = runner.invoke(app, [
            "simulate", "--config", str(configs_dir / "baseline.yaml"),
            "--output", str(tmp_path),
        ])

        assert result.exit_code == 0, result.output
        assert "Simulation Results Summary" in result.output
        report = json.loads((tmp_path / "report.json").read_text())
        assert report["summary"]["total_finished"] == 8
        assert (tmp_path / "timeline.csv").exists()

    def test_duration_override(self, tmp_path):
        config_path = tmp_path / "idle.yaml"
        config_path.write_text(yaml.dump({"workloads": {"count": 0}}))

        result = runner.invoke(app, [
            "simulate", "--config", str(config_path), "--duration", "12",
            "--output", str(tmp_path / "out"),
        ])

        assert result.exit_code == 0, result.output
        report = json.loads((tmp_path / "out" / "report.json").read_text())
        assert report["summary"]["simulation_time"] == 12.0

    def test_invalid_config_exits_with_error(self, tmp_path):
        config_path = tmp_path / "bad.yaml"
        config_path.write_text(yaml.dump({
            "autoscaling": {"scale_up_threshold": 0.2, "scale_down_threshold": 0.5},
        }))

        result = runner.invoke(app, ["simulate", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


    def test_misspelled_key_reported(self, tmp_path):
        config_path = tmp_path / "typo.yaml"
        config_path.write_text(yaml.dump({"workloads": {"cnt": 3}}))

        result = runner.invoke(app, ["simulate", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        assert "cnt" in result.output


class TestInitConfigCommand:
    """Test cases for `cloud-costsim init-config`."""

    def test_writes_baseline(self, tmp_path):
        result = runner.invoke(app, ["init-config", "--output-dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "baseline.yaml").exists()
