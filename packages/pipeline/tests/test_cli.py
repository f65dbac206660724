"""
tests/test_cli.py — CLI exit codes and output, with pipelines patched out.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from nycdata_pipeline.cli import main
from nycdata_pipeline.pipelines.outcome import RunOutcome
from nycdata_pipeline.utils.validation import ValidationResult


def _outcome(pipeline: str, status: str, reason: str = "") -> RunOutcome:
    return RunOutcome(pipeline, status, reason=reason)


class TestRunCommand:
    def test_success_exits_zero(self):
        with patch(
            "nycdata_pipeline.pipelines.housing.run",
            new=AsyncMock(return_value=_outcome("housing", "success", "Record count changed (0 -> 5)")),
        ):
            result = CliRunner().invoke(main, ["run", "housing"])

        assert result.exit_code == 0
        assert "success" in result.output

    def test_dry_run_flag_is_forwarded(self):
        runner = AsyncMock(return_value=_outcome("capital_budget", "dry_run"))
        with patch("nycdata_pipeline.pipelines.capital_budget.run", new=runner):
            result = CliRunner().invoke(main, ["run", "capital-budget", "--dry-run"])

        assert result.exit_code == 0
        runner.assert_awaited_once_with(dry_run=True)

    def test_validation_failure_exits_one(self):
        failure = ValidationResult.fail("Housing NY", "Housing NY: Insufficient records (3 < 100 minimum)")
        with patch(
            "nycdata_pipeline.pipelines.housing.run",
            new=AsyncMock(return_value=RunOutcome.validation_failed("housing", [failure])),
        ), patch(
            "nycdata_pipeline.pipelines.capital_budget.run",
            new=AsyncMock(return_value=_outcome("capital_budget", "skipped")),
        ):
            result = CliRunner().invoke(main, ["run", "all"])

        assert result.exit_code == 1
        assert "Insufficient records" in result.output

    def test_pipeline_exception_exits_one(self):
        with patch(
            "nycdata_pipeline.pipelines.housing.run",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            result = CliRunner().invoke(main, ["run", "housing"])

        assert result.exit_code == 1
        assert "boom" in result.output

    def test_unknown_pipeline_rejected(self):
        result = CliRunner().invoke(main, ["run", "trade"])
        assert result.exit_code == 2
