"""Tests for the operator CLI commands."""

import json

from typer.testing import CliRunner

from cli.cli import app
from trainer.programs.service import create_program

runner = CliRunner()


def test_catch_up_without_program(db_session, test_user_id):
    result = runner.invoke(app, ["catch-up", "--user-id", test_user_id])

    assert result.exit_code == 0
    assert "no_active_program" in result.output


def test_regenerate_calendar_requires_active_program(db_session, test_user_id):
    result = runner.invoke(app, ["regenerate-calendar", "--user-id", test_user_id])

    assert result.exit_code == 1
    assert "No active program" in result.output


def test_regenerate_calendar_with_program(db_session, test_user_id, sample_program_markdown):
    create_program(test_user_id, sample_program_markdown, status="active")

    result = runner.invoke(app, ["regenerate-calendar", "--user-id", test_user_id])

    assert result.exit_code == 0
    assert '"created": 3' in result.output


def test_week_stats_for_empty_week(db_session, test_user_id):
    result = runner.invoke(app, ["week-stats", "--user-id", test_user_id])

    assert result.exit_code == 0
    assert '"sessions_completed": 0' in result.output


def test_history_empty(db_session, test_user_id):
    result = runner.invoke(app, ["history", "--user-id", test_user_id, "--limit", "5"])

    assert result.exit_code == 0
    assert "Workout history" in result.output


def test_weekly_review_single_user_skips(db_session, test_user_id, monkeypatch):
    async def fake_review(user_id):
        return {"skipped": True, "reason": "no_sessions"}

    monkeypatch.setattr("cli.cli.run_weekly_review", fake_review)

    result = runner.invoke(app, ["weekly-review", "--user-id", test_user_id])

    assert result.exit_code == 0
    assert json.dumps("no_sessions") in result.output


def test_check_db_reports_failure(monkeypatch):
    def broken():
        raise RuntimeError("connection refused")

    monkeypatch.setattr("cli.cli.check_database_connection", broken)

    result = runner.invoke(app, ["check-db"])

    assert result.exit_code == 1
    assert "Database connection failed" in result.output
