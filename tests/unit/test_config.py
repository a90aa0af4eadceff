"""
Unit tests for configuration loading: defaults, YAML overlay and
environment overrides.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stepguard.config import StepGuardConfig, load_config
from stepguard.errors import ConfigError

if TYPE_CHECKING:
    from pathlib import Path


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert isinstance(config, StepGuardConfig)
        assert config.integrity.record_filename == "context.json"
        assert config.integrity.record_key == "testify"
        assert config.integrity.notes_ref == "refs/notes/testify"
        assert config.coverage.dry_run_timeout_s == 300.0
        assert "assert" in config.quality.assertion_keywords

    def test_yaml_overlay_merges(self, tmp_path: Path):
        override = tmp_path / "stepguard.yaml"
        override.write_text("coverage:\n  max_detail_lines: 5\n", encoding="utf-8")

        config = load_config(override)

        assert config.coverage.max_detail_lines == 5
        # Sibling keys from the defaults survive the merge
        assert config.coverage.dry_run_timeout_s == 300.0

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("STEPGUARD_COVERAGE__DRY_RUN_TIMEOUT_S", "12.5")
        monkeypatch.setenv("STEPGUARD_INTEGRITY__NOTES_REF", "refs/notes/custom")

        config = load_config()

        assert config.coverage.dry_run_timeout_s == 12.5
        assert config.integrity.notes_ref == "refs/notes/custom"

    def test_env_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        override = tmp_path / "stepguard.yaml"
        override.write_text("logging:\n  level: INFO\n", encoding="utf-8")
        monkeypatch.setenv("STEPGUARD_LOGGING__LEVEL", "DEBUG")

        assert load_config(override).logging.level == "DEBUG"

    def test_keywords_lowercased(self, tmp_path: Path):
        override = tmp_path / "stepguard.yaml"
        override.write_text(
            "quality:\n  assertion_keywords: [' AssertThat ', Expect, '']\n",
            encoding="utf-8",
        )

        config = load_config(override)

        assert config.quality.assertion_keywords == ["assertthat", "expect"]


class TestConfigErrors:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        broken = tmp_path / "broken.yaml"
        broken.write_text("coverage: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(broken)

    def test_non_mapping_root(self, tmp_path: Path):
        listing = tmp_path / "list.yaml"
        listing.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config(listing)
