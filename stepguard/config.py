"""
StepGuard -- Configuration System

All configuration is Pydantic-validated and loaded from:
1. config/default.yaml (defaults)
2. Environment variables (overrides, STEPGUARD_ prefix)

Every tunable parameter of the verification engine lives here.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stepguard.errors import ConfigError

# ─── Sub-configs ──────────────────────────────────────────────────


class LoggingConfig(BaseModel):
    level: str = "WARNING"
    format: str = "console"  # "console" | "json"


class IntegrityConfig(BaseModel):
    record_filename: str = "context.json"
    record_key: str = "testify"
    notes_ref: str = "refs/notes/testify"
    empty_sentinel: str = "NO_ASSERTIONS"
    git_timeout_s: float = 15.0


class CoverageConfig(BaseModel):
    dry_run_timeout_s: float = 300.0
    # Output kept in CoverageResult.details is capped per framework
    max_detail_lines: int = 20


class QualityConfig(BaseModel):
    assertion_keywords: list[str] = Field(
        default_factory=lambda: [
            "assert",
            "assertequal",
            "assertin",
            "asserttrue",
            "assertfalse",
            "assertraises",
            "assertisnone",
            "assertisnotnone",
            "assert_that",
            "should",
            "expect",
            "verify",
        ]
    )
    # Lines scanned after a step registration when no braces delimit the body
    heuristic_lookahead: int = 30

    @field_validator("assertion_keywords")
    @classmethod
    def _lowercase_keywords(cls, value: list[str]) -> list[str]:
        return [kw.strip().lower() for kw in value if kw.strip()]


# ─── Root Configuration ──────────────────────────────────────────


class StepGuardConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="STEPGUARD_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    integrity: IntegrityConfig = Field(default_factory=IntegrityConfig)
    coverage: CoverageConfig = Field(default_factory=CoverageConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)


_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config root in {path} must be a mapping")
    return raw


def load_config(config_path: str | Path | None = None) -> StepGuardConfig:
    """
    Load defaults, overlay an optional YAML file, then apply environment overrides.
    """
    raw: dict[str, Any] = {}
    if _DEFAULT_CONFIG_PATH.exists():
        raw = _read_yaml(_DEFAULT_CONFIG_PATH)

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        raw = _deep_merge(raw, _read_yaml(path))

    # YAML values are passed as init kwargs, which outrank env in
    # pydantic-settings, so the common knobs are injected explicitly.
    if log_level := os.environ.get("STEPGUARD_LOGGING__LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level
    if log_format := os.environ.get("STEPGUARD_LOGGING__FORMAT"):
        raw.setdefault("logging", {})["format"] = log_format
    if timeout := os.environ.get("STEPGUARD_COVERAGE__DRY_RUN_TIMEOUT_S"):
        raw.setdefault("coverage", {})["dry_run_timeout_s"] = float(timeout)
    if notes_ref := os.environ.get("STEPGUARD_INTEGRITY__NOTES_REF"):
        raw.setdefault("integrity", {})["notes_ref"] = notes_ref

    return StepGuardConfig(**raw)
