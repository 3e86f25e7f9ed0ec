"""Tests for the admin CLI."""

import pytest
from click.testing import CliRunner

from tote_engine import cli as cli_module
from tote_engine.services import cause_service


@pytest.fixture
def runner(db, monkeypatch):
    monkeypatch.setattr(cli_module, "SessionLocal", lambda: db)
    return CliRunner()


def test_create_cause(runner, db):
    result = runner.invoke(cli_module.cli, ["create-cause", "--title", "River Cleanup", "--offline"])

    assert result.exit_code == 0, result.output
    assert "Created cause: River Cleanup" in result.output
    causes = cause_service.list_causes(db)
    assert [(c.title, c.is_online) for c in causes] == [("River Cleanup", False)]


def test_sweep_reports_counts(runner):
    result = runner.invoke(cli_module.cli, ["sweep"])

    assert result.exit_code == 0, result.output
    assert "Expired 0 stale claim(s)" in result.output
    assert "Expired 0 magic link(s)" in result.output


def test_sweep_rejects_unknown_kind(runner):
    result = runner.invoke(cli_module.cli, ["sweep", "--kind", "everything"])

    assert result.exit_code != 0
