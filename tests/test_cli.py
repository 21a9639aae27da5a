"""Tests for the Typer CLI (commands that make no API calls)."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from actorqueue.cli.commands.jobs import _batch_requests, _parse_input
from actorqueue.cli.main import app
from actorqueue.core.models import Priority

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger("actorqueue").handlers.clear()


@pytest.fixture
def app_yaml(tmp_path) -> Path:
    path = tmp_path / "app.yaml"
    path.write_text(
        f"apify:\n"
        f"  token_file: {tmp_path / 'tokens.txt'}\n"
        f"storage:\n"
        f"  output_dir: {tmp_path / 'output'}\n"
        f"logging:\n"
        f"  file: null\n"
        f"  rich_console: false\n",
        encoding="utf-8",
    )
    return path


class TestTokenCommands:
    def test_add_then_count(self, app_yaml, tmp_path) -> None:
        result = runner.invoke(app, ["--config", str(app_yaml), "tokens", "add", "apify_api_first"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["--config", str(app_yaml), "tokens", "count"])
        assert result.exit_code == 0
        assert "1" in result.output
        assert (tmp_path / "tokens.txt").read_text(encoding="utf-8") == "apify_api_first"

    def test_duplicate_token_rejected(self, app_yaml) -> None:
        runner.invoke(app, ["--config", str(app_yaml), "tokens", "add", "same"])
        result = runner.invoke(app, ["--config", str(app_yaml), "tokens", "add", "same"])

        assert result.exit_code == 1


class TestMiscCommands:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_platforms(self, app_yaml) -> None:
        result = runner.invoke(app, ["--config", str(app_yaml), "platforms"])

        assert result.exit_code == 0, result.output
        assert "reddit" in result.output
        assert "dateLimit" in result.output

    def test_bad_config_exits(self, tmp_path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("queue:\n  max_concurrent_jobs: nope\n", encoding="utf-8")

        result = runner.invoke(app, ["--config", str(path), "platforms"])
        assert result.exit_code == 1

    def test_results_list_empty(self, app_yaml) -> None:
        result = runner.invoke(app, ["--config", str(app_yaml), "results", "list"])
        assert result.exit_code == 0, result.output


class TestJobInputParsing:
    def test_inline_json(self) -> None:
        assert _parse_input('{"dateLimit": "2024-01-01"}') == {"dateLimit": "2024-01-01"}

    def test_yaml_file(self, tmp_path) -> None:
        path = tmp_path / "job.yaml"
        path.write_text("keywords: ai\nmaxItems: 10\n", encoding="utf-8")

        assert _parse_input(str(path)) == {"keywords": "ai", "maxItems": 10}

    def test_batch_file(self, tmp_path) -> None:
        path = tmp_path / "batch.yaml"
        path.write_text(
            "max_concurrent: 3\n"
            "jobs:\n"
            "  - platform: reddit\n"
            "    priority: high\n"
            "    config: {dateLimit: '2024-01-01'}\n"
            "  - platform: x\n"
            "    config: {keywords: ai, startDate: '2024-01-01', endDate: '2024-01-03'}\n",
            encoding="utf-8",
        )

        requests, max_concurrent = _batch_requests(path)

        assert max_concurrent == 3
        assert [r.platform for r in requests] == ["reddit", "x"]
        assert requests[0].options.priority == Priority.HIGH
        assert requests[1].options.priority == Priority.NORMAL
