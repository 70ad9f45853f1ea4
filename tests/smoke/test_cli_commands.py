"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(args: list[str], database_url: str = "sqlite://", timeout: int = 60) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m civicbook.cli.main'
        database_url: DATABASE_URL for the subprocess
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    env = dict(os.environ, DATABASE_URL=database_url, PYTHONPATH=str(PROJECT_ROOT))
    result = subprocess.run(
        [sys.executable, "-m", "civicbook.cli.main", *args],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=env,
    )
    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        code, stdout, stderr = run_cli_command(["--help"])
        assert code == 0, f"Help failed: {stderr}"
        assert "render" in stdout
        assert "submit" in stdout

    def test_db_help(self):
        code, stdout, stderr = run_cli_command(["db", "--help"])
        assert code == 0, f"Help failed: {stderr}"
        assert "init" in stdout


class TestValidate:
    """Payload validation command."""

    def test_valid_payload(self, tmp_path, poll_payload):
        path = tmp_path / "poll.json"
        path.write_text(json.dumps(poll_payload), encoding="utf-8")
        code, stdout, stderr = run_cli_command(["validate", "poll", str(path)])
        assert code == 0, stderr
        assert "allowMultiple" in stdout

    def test_invalid_payload(self, tmp_path, poll_payload):
        poll_payload["showResults"] = "sometimes"
        path = tmp_path / "poll.json"
        path.write_text(json.dumps(poll_payload), encoding="utf-8")
        code, stdout, _ = run_cli_command(["validate", "poll", str(path)])
        assert code == 1
        assert "EnumOutOfRange" in stdout


class TestDatabaseCommands:
    """Commands against a fresh SQLite file."""

    def test_init_then_list(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        code, _, stderr = run_cli_command(["db", "init"], database_url=url)
        assert code == 0, stderr
        code, stdout, stderr = run_cli_command(["elements", "1"], database_url=url)
        assert code == 0, stderr
        assert "no interactive elements" in stdout

    def test_render_missing_section(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        run_cli_command(["db", "init"], database_url=url)
        code, stdout, _ = run_cli_command(["render", "42"], database_url=url)
        assert code == 1
        assert "NotFound" in stdout
