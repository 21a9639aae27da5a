"""Tests for app.yaml loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from actorqueue.core.config.loader import (
    ConfigError,
    load_app_config,
    load_yaml_document,
    write_default_app_config,
)
from actorqueue.core.config.models import AppConfig, StorageBackend


class TestLoadAppConfig:
    def test_missing_file_gives_defaults(self, tmp_path) -> None:
        config = load_app_config(tmp_path / "absent.yaml")

        assert config == AppConfig()
        assert config.queue.max_concurrent_jobs == 5
        assert config.apify.max_retries == 3
        assert config.storage.backend == StorageBackend.FILE

    def test_env_expansion(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("AQ_MAX_JOBS", "9")
        monkeypatch.delenv("AQ_UNSET", raising=False)
        path = tmp_path / "app.yaml"
        path.write_text(
            "queue:\n"
            "  max_concurrent_jobs: ${AQ_MAX_JOBS}\n"
            "storage:\n"
            "  output_dir: ${AQ_UNSET:-results}\n",
            encoding="utf-8",
        )

        config = load_app_config(path)

        assert config.queue.max_concurrent_jobs == 9
        assert config.storage.output_dir == Path("results")

    def test_default_template_is_valid(self, tmp_path) -> None:
        path = write_default_app_config(tmp_path / "configs" / "app.yaml")

        config = load_app_config(path)

        assert config.apify.wait_for_finish_seconds == 60
        assert config.actors.x_days_per_range == 3
        assert config.logging.level == "INFO"

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("queue: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            load_app_config(path)
        assert exc_info.value.path == path

    def test_invalid_values(self, tmp_path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("queue:\n  max_concurrent_jobs: 0\nlogging:\n  level: LOUD\n", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            load_app_config(path)
        assert "max_concurrent_jobs" in exc_info.value.details
        assert "Unknown log level" in exc_info.value.details

    def test_top_level_must_be_mapping(self, tmp_path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_app_config(path)


class TestLoadYamlDocument:
    def test_batch_document(self, tmp_path) -> None:
        path = tmp_path / "batch.yaml"
        path.write_text(
            "jobs:\n"
            "  - platform: x\n"
            "    config:\n"
            "      keywords: ai\n",
            encoding="utf-8",
        )

        document = load_yaml_document(path)
        assert document["jobs"][0]["config"] == {"keywords": "ai"}

    def test_missing_document(self, tmp_path) -> None:
        with pytest.raises(ConfigError):
            load_yaml_document(tmp_path / "nope.yaml")
