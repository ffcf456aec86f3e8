"""
Test suite for CLI interface

Tests CLI commands, argument parsing, and integration with core functionality.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from climatesync.cli import alerts, analyze, cli, config, thresholds
from climatesync.config import ClimateSyncConfig, set_config


@pytest.fixture(autouse=True)
def fresh_config():
    """Keep each command on default configuration"""
    set_config(ClimateSyncConfig())
    yield
    set_config(None)


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestCLICommands:
    """Test CLI command functionality"""

    def setup_method(self):
        self.runner = CliRunner()

    def test_cli_group_help(self):
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "climatesync - environmental advisories" in result.output
        for command in ["analyze", "alerts", "thresholds", "config"]:
            assert command in result.output

    def test_cli_version(self):
        result = self.runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestAnalyzeCommand:
    """Test analyze CLI command"""

    def setup_method(self):
        self.runner = CliRunner()

    def test_analyze_missing_request_file(self):
        result = self.runner.invoke(analyze, [])
        assert result.exit_code != 0

    def test_analyze_real_models(self, temp_dir, sample_request_data):
        request_file = write_json(temp_dir / "request.json", sample_request_data)

        result = self.runner.invoke(analyze, ["--request-file", request_file])

        assert result.exit_code == 0
        assert "Advisory for Delhi (delhi)" in result.output
        assert "Overall Score:" in result.output
        assert "Risk:" in result.output

    @patch("climatesync.cli.run_analysis_func")
    def test_analyze_partial_result(self, mock_run, temp_dir, sample_request_data):
        mock_run.return_value = {
            "location_id": "delhi",
            "location_name": "Delhi",
            "overall_score": 55,
            "overall_confidence": 0.9,
            "status": "PARTIAL",
            "risk_assessment": {"overall_risk_level": "medium", "overall_risk_score": 55},
            "action_priorities": [
                {"priority": "high", "action": "Improve soil health through organic matter addition"}
            ],
            "system_metrics": {"models_failed": ["weather"]},
        }
        request_file = write_json(temp_dir / "request.json", sample_request_data)

        result = self.runner.invoke(analyze, ["--request-file", request_file, "--deadline", "2.5"])

        assert result.exit_code == 0
        assert "Overall Score: 55" in result.output
        assert "❌ Status: PARTIAL" in result.output
        assert "Priority Actions:" in result.output
        assert "[high] Improve soil health" in result.output
        assert "Models without results: weather" in result.output

        call_args = mock_run.call_args
        assert call_args[0][0]["location"]["id"] == "delhi"
        assert call_args[1]["deadline"] == 2.5

    @patch("climatesync.cli.run_analysis_func")
    def test_analyze_json_output(self, mock_run, temp_dir, sample_request_data):
        mock_run.return_value = {"location_id": "delhi", "overall_score": 70}
        request_file = write_json(temp_dir / "request.json", sample_request_data)

        result = self.runner.invoke(analyze, ["--request-file", request_file, "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == {"location_id": "delhi", "overall_score": 70}

    def test_analyze_invalid_request(self, temp_dir):
        request_file = write_json(temp_dir / "request.json", {"location": {"id": "x"}})

        result = self.runner.invoke(analyze, ["--request-file", request_file])

        assert result.exit_code == 0  # CLI handles the error
        assert "❌ Analysis failed" in result.output


class TestAlertsCommand:
    """Test alerts CLI command"""

    def setup_method(self):
        self.runner = CliRunner()

    @staticmethod
    def observation(rainfall, minute=0):
        return {
            "location_id": "delhi",
            "location_name": "Delhi",
            "observed_at": f"2025-06-01T06:{minute:02d}:00+00:00",
            "temperature": 30.0,
            "humidity": 55.0,
            "rainfall": rainfall,
        }

    def test_escalation(self, temp_dir):
        observation_file = write_json(
            temp_dir / "observations.json",
            [self.observation(5.0), self.observation(22.0, minute=10)],
        )

        result = self.runner.invoke(alerts, ["--observation-file", observation_file])

        assert result.exit_code == 0
        assert "Alerts raised: 2" in result.output
        assert "FLOOD LOW" in result.output
        assert "FLOOD HIGH" in result.output
        assert "Active alerts: 1" in result.output

    def test_single_observation_with_thresholds(self, temp_dir, thresholds_file):
        observation_file = write_json(temp_dir / "observation.json", self.observation(4.5))

        result = self.runner.invoke(
            alerts,
            ["--observation-file", observation_file, "--thresholds-file", str(thresholds_file)],
        )

        assert result.exit_code == 0
        assert "Alerts raised: 1" in result.output
        assert "Light rainfall detected in Delhi" in result.output

    def test_invalid_observation(self, temp_dir):
        observation_file = write_json(temp_dir / "observation.json", {"rainfall": 3})

        result = self.runner.invoke(alerts, ["--observation-file", observation_file])

        assert result.exit_code == 0
        assert "❌ Alert evaluation failed" in result.output


class TestThresholdsCommand:
    def setup_method(self):
        self.runner = CliRunner()

    def test_defaults(self):
        result = self.runner.invoke(thresholds, [])

        assert result.exit_code == 0
        assert "Alert Thresholds" in result.output
        assert "FLOOD (rainfall, mm/h): LOW=5, MEDIUM=10, HIGH=20, CRITICAL=50" in result.output
        assert "HEAT (" in result.output

    def test_custom_file(self, thresholds_file):
        result = self.runner.invoke(thresholds, ["--file", str(thresholds_file)])

        assert result.exit_code == 0
        assert "LOW=4, MEDIUM=8, HIGH=16, CRITICAL=40" in result.output
        assert "°C" in result.output


class TestConfigCommand:
    """Test config CLI command"""

    def setup_method(self):
        self.runner = CliRunner()

    def test_config_no_options(self):
        result = self.runner.invoke(config, [])

        assert result.exit_code == 0
        assert "Use --show to display current configuration" in result.output

    def test_config_show_json(self):
        result = self.runner.invoke(config, ["--show", "--format", "json"])

        assert result.exit_code == 0
        assert "Current climatesync Configuration" in result.output
        payload = result.output.split("=" * 40, 1)[1]
        data = json.loads(payload)
        assert data["scheduler"]["max_locations"] == 10
        assert data["alerts"]["default_ttl_seconds"] == 3600

    def test_config_show_yaml(self):
        result = self.runner.invoke(config, ["--show"])

        assert result.exit_code == 0
        assert "interval_seconds:" in result.output
