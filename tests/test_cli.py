"""
Tests for the CLI interface.
"""
import json
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from cost_audit_store.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from cost_audit_store.storage.client import StoreConnectionError
from cost_audit_store.storage.models import CollectorsSummary, Execution
from cost_audit_store.storage.repository import QueryError

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path):
    """Write a valid configuration file."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "log_level": "warning",
        "storage": {
            "elasticsearch": {
                "endpoints": ["http://localhost:9200"],
                "index": "finala",
            }
        },
    }), encoding="utf-8")
    return str(path)


@pytest.fixture
def mock_storage():
    """Mock the store connection."""
    with patch('cost_audit_store.cli.main.get_storage') as mock:
        yield mock.return_value


class TestCLI:
    """Test CLI commands."""

    def test_summary_command(self, config_path, mock_storage):
        mock_storage.get_summary.return_value = {
            "ec2": CollectorsSummary("ec2", 30, status=1, total_spent=12.5, resource_count=1),
        }

        result = runner.invoke(app, ["summary", "run_1", "--config", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "ec2" in result.output
        assert "$12.50" in result.output
        mock_storage.get_summary.assert_called_once_with("run_1", {})

    def test_summary_with_filters(self, config_path, mock_storage):
        mock_storage.get_summary.return_value = {}

        result = runner.invoke(app, [
            "summary", "run_1", "-f", "Data.Region=us-east-1", "-f", "Data.Tag=a=b",
            "-c", config_path,
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert "No status events found" in result.output
        mock_storage.get_summary.assert_called_once_with(
            "run_1", {"Data.Region": "us-east-1", "Data.Tag": "a=b"}
        )

    def test_summary_rejects_malformed_filter(self, config_path, mock_storage):
        result = runner.invoke(app, ["summary", "run_1", "-f", "nokey", "-c", config_path])

        assert result.exit_code != EXIT_CODE_PASS
        mock_storage.get_summary.assert_not_called()

    def test_summary_query_error(self, config_path, mock_storage):
        mock_storage.get_summary.side_effect = QueryError("store down")

        result = runner.invoke(app, ["summary", "run_1", "-c", config_path])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "store down" in result.output

    def test_executions_command(self, config_path, mock_storage):
        mock_storage.get_executions.return_value = [
            Execution("nightly_1700000000", "nightly", 1700000000),
        ]

        result = runner.invoke(app, ["executions", "--limit", "3", "-c", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "nightly" in result.output
        assert "2023-11-14" in result.output
        mock_storage.get_executions.assert_called_once_with(3)

    def test_executions_out_of_range_time_is_printed_raw(self, config_path, mock_storage):
        mock_storage.get_executions.return_value = [
            Execution("run_99999999999999", "run", 99999999999999),
            Execution("nightly_1700000000", "nightly", 1700000000),
        ]

        result = runner.invoke(app, ["executions", "-c", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "99999999999999" in result.output
        assert "2023-11-14" in result.output

    def test_executions_empty(self, config_path, mock_storage):
        mock_storage.get_executions.return_value = []

        result = runner.invoke(app, ["executions", "-c", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "No collector executions found" in result.output

    def test_resources_prints_json_lines(self, config_path, mock_storage):
        mock_storage.get_resources.return_value = [
            {"ResourceName": "ec2", "Data": {"PricePerMonth": 1.5}},
        ]

        result = runner.invoke(app, ["resources", "ec2", "run_1", "-c", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert json.loads(result.output.strip()) == {"ResourceName": "ec2", "Data": {"PricePerMonth": 1.5}}
        mock_storage.get_resources.assert_called_once_with("ec2", "run_1")

    def test_save_command(self, config_path, mock_storage, tmp_path):
        documents = tmp_path / "docs.json"
        documents.write_text(json.dumps([{"ResourceName": "ec2"}, {"ResourceName": "rds"}]))
        mock_storage.save.return_value = True

        result = runner.invoke(app, ["save", str(documents), "-c", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Saved 2 document(s), 0 failed" in result.output
        assert mock_storage.save.call_count == 2

    def test_save_reports_failures(self, config_path, mock_storage, tmp_path):
        documents = tmp_path / "doc.json"
        documents.write_text(json.dumps({"ResourceName": "ec2"}))
        mock_storage.save.return_value = False

        result = runner.invoke(app, ["save", str(documents), "-c", config_path])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Saved 0 document(s), 1 failed" in result.output

    def test_init_creates_index(self, config_path, mock_storage):
        mock_storage.create_index.return_value = True

        result = runner.invoke(app, ["init", "-c", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Index finala is ready" in result.output

    def test_connection_error_fails(self, config_path):
        with patch('cost_audit_store.cli.main.get_storage', side_effect=StoreConnectionError("timed out")):
            result = runner.invoke(app, ["init", "-c", config_path])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "timed out" in result.output

    def test_missing_config_fails(self, tmp_path):
        result = runner.invoke(app, ["executions", "-c", str(tmp_path / "missing.yaml")])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Configuration error" in result.output
