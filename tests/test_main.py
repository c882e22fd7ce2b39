"""Tests for the command-line entry point."""

from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from conftest import stub_detectors
from message_accuracy import main
from message_accuracy.assessment.engine import AccuracyEngine
from message_accuracy.models.snapshot import AccuracySnapshot, CategoryScores

runner = CliRunner()


@pytest.fixture
def cli(monkeypatch):
    configure = MagicMock()
    monkeypatch.setattr(main, "configure_logging", configure)
    monkeypatch.setattr(
        main, "AccuracyEngine", lambda settings: AccuracyEngine(settings=settings, **stub_detectors())
    )
    return configure


class TestScoreCommand:
    def test_prints_snapshot_pair(self, cli):
        result = runner.invoke(main.app, ["I went to the market yesterday.", "--tier", "pro"])
        assert result.exit_code == 0
        assert '"current"' in result.output
        assert '"weighted"' in result.output
        cli.assert_called_once_with(None)

    def test_previous_snapshot_file(self, cli, tmp_path):
        previous = AccuracySnapshot(
            overall=80, adjusted_overall=80, categories=CategoryScores.neutral(80), calculation_count=10
        )
        path = tmp_path / "previous.json"
        path.write_text(previous.model_dump_json(), encoding="utf-8")
        result = runner.invoke(main.app, ["I went home.", "--previous", str(path), "--env", "production"])
        assert result.exit_code == 0
        assert '"calculation_count": 11' in result.output
        cli.assert_called_once_with("production")

    def test_missing_previous_snapshot(self, cli, tmp_path):
        result = runner.invoke(main.app, ["Hello.", "--previous", str(tmp_path / "missing.json")])
        assert result.exit_code == 1

    def test_invalid_tier(self, cli):
        result = runner.invoke(main.app, ["Hello.", "--tier", "gold"])
        assert result.exit_code != 0
