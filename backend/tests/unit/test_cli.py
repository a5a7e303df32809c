"""
Unit tests for the exlabctl admin CLI.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests
from click.testing import CliRunner

from exlabctl.__main__ import cli

LAB = {
    "id": "a1b2c3",
    "network": "exlab-a1b2c3",
    "dns_ip": "172.16.5.2",
    "exercises": [{"tag": "sql-injection", "state": "running", "ips": [10, 11], "machines": [{}, {}, {}]}],
    "dns_records": ["shop.lab IN A 172.16.5.10"],
}


def response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = ""
    return resp


@pytest.fixture
def runner():
    return CliRunner()


class TestLabCommands:
    """Test lab subcommands."""
    
    def test_create(self, runner):
        with patch.object(requests.Session, "request", return_value=response(201, LAB)) as req:
            result = runner.invoke(cli, ["--api-url", "http://exlab:8000", "lab", "create", "sql-injection"])
        
        assert result.exit_code == 0
        req.assert_called_once_with(
            "POST", "http://exlab:8000/api/v1/labs", json={"tags": ["sql-injection"]}
        )
        assert "exlab-a1b2c3" in result.output
        assert "shop.lab IN A 172.16.5.10" in result.output
    
    def test_reset(self, runner):
        with patch.object(requests.Session, "request", return_value=response(200, LAB)) as req:
            result = runner.invoke(cli, ["lab", "reset", "a1b2c3", "sql-injection"])
        
        assert result.exit_code == 0
        assert req.call_args.args == (
            "POST",
            "http://localhost:8000/api/v1/labs/a1b2c3/exercises/sql-injection/reset",
        )
    
    def test_json_output(self, runner):
        with patch.object(requests.Session, "request", return_value=response(200, LAB)):
            result = runner.invoke(cli, ["--output", "json", "lab", "show", "a1b2c3"])
        
        assert '"id": "a1b2c3"' in result.output
    
    def test_api_error(self, runner):
        error = response(404, {"error": "NOT_FOUND", "detail": "Lab not found: zzz"})
        with patch.object(requests.Session, "request", return_value=error):
            result = runner.invoke(cli, ["lab", "show", "zzz"])
        
        assert "Error (404): Lab not found: zzz" in result.output
    
    def test_close_requires_confirmation(self, runner):
        with patch.object(requests.Session, "request") as req:
            result = runner.invoke(cli, ["lab", "close", "a1b2c3"], input="n\n")
        
        assert result.exit_code == 0
        req.assert_not_called()


class TestExerciseCommands:
    """Test exercise subcommands."""
    
    def test_list(self, runner):
        exercises = [{"tag": "sql-injection", "name": "SQL Injection", "category": "web", "containers": 2, "vms": 1}]
        with patch.object(requests.Session, "request", return_value=response(200, exercises)):
            result = runner.invoke(cli, ["exercise", "list"])
        
        assert "sql-injection" in result.output
