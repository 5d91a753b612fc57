"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import pytest
from typer.testing import CliRunner

from vmq.cli.main import app

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture
def db(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


def run(db: str, *args: str, input: str | None = None):
    return runner.invoke(app, ["--db", db, *args], input=input)


class TestCLIHelp:
    def test_main_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("record", "stats", "due", "plan", "reset"):
            assert command in result.stdout

    @pytest.mark.parametrize("command", ["record", "stats", "due", "plan", "reset"])
    def test_command_help(self, command):
        assert runner.invoke(app, [command, "--help"]).exit_code == 0


class TestRecord:
    def test_correct_answer(self, db):
        result = run(db, "record", "keys", "--correct", "--time-ms", "1800")
        assert result.exit_code == 0, result.stdout
        assert "Fast! +7 XP" in result.stdout
        assert "keys: 1/1" in result.stdout

    def test_wrong_answer_with_item(self, db):
        result = run(db, "record", "keys", "--wrong", "--item", "F#", "--expected", "F#", "--chosen", "F")
        assert result.exit_code == 0, result.stdout
        assert "Correct answer: F#." in result.stdout
        assert "Next review of F#" in result.stdout

    def test_blank_module_rejected(self, db):
        result = run(db, "record", " ", "--correct")
        assert result.exit_code == 1

    def test_negative_time_rejected(self, db):
        result = run(db, "record", "keys", "--time-ms", "-5")
        assert result.exit_code != 0


class TestStats:
    def test_empty(self, db):
        result = run(db, "stats")
        assert result.exit_code == 0
        assert "No answers recorded yet" in result.stdout

    def test_after_answers(self, db):
        run(db, "record", "keys", "--correct", "--time-ms", "1000")
        run(db, "record", "rhythm", "--wrong", "--time-ms", "1000")

        result = run(db, "stats")
        assert result.exit_code == 0, result.stdout
        assert "keys" in result.stdout
        assert "rhythm" in result.stdout
        assert "Level 1" in result.stdout

    def test_single_module(self, db):
        run(db, "record", "keys", "--correct")
        result = run(db, "stats", "keys")
        assert result.exit_code == 0
        assert "keys" in result.stdout


class TestDueAndPlan:
    def test_nothing_due(self, db):
        result = run(db, "due")
        assert result.exit_code == 0
        assert "Nothing due" in result.stdout

    def test_plan_fresh(self, db):
        result = run(db, "plan", "keys", "--fresh", "G")
        assert result.exit_code == 0, result.stdout
        assert "beginner" in result.stdout
        assert "Next: G (fresh)" in result.stdout

    def test_plan_nothing_to_serve(self, db):
        result = run(db, "plan", "keys")
        assert result.exit_code == 0
        assert "generate a new question" in result.stdout


class TestReset:
    def test_reset_with_yes(self, db):
        run(db, "record", "keys", "--correct")
        result = run(db, "reset", "keys", "--yes")
        assert result.exit_code == 0
        assert "Reset keys" in result.stdout

    def test_reset_declined(self, db):
        result = run(db, "reset", "keys", input="n\n")
        assert result.exit_code != 0
