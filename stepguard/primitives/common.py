"""
StepGuard -- Common Primitives

Shared enums, base classes, and utilities used across all subsystems.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import BaseModel


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime | None = None) -> str:
    """Second-resolution ISO-8601 UTC stamp, e.g. 2026-01-15T12:00:00Z."""
    return (moment or utc_now()).astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ─── Enums ────────────────────────────────────────────────────────


class CheckStatus(enum.StrEnum):
    """Outcome of a digest or anchor comparison."""

    VALID = "valid"
    INVALID = "invalid"
    MISSING = "missing"
    SKIPPED = "skipped"


class DriftStatus(enum.StrEnum):
    CLEAN = "clean"
    MODIFIED = "modified"
    UNTRACKED = "untracked"
    SKIPPED = "skipped"


class GateStatus(enum.StrEnum):
    """Overall status shared by every verification gate."""

    PASS = "PASS"
    WARN = "WARN"
    DEGRADED = "DEGRADED"
    BLOCKED = "BLOCKED"

    @property
    def exit_code(self) -> int:
        return 1 if self is GateStatus.BLOCKED else 0


class EnforcementPolicy(enum.StrEnum):
    """Whether the calling workflow requires assertion verification."""

    MANDATORY = "mandatory"
    OPTIONAL = "optional"
    FORBIDDEN = "forbidden"


# ─── Base Models ──────────────────────────────────────────────────


class StepGuardBaseModel(BaseModel):
    """Base model for all StepGuard records."""

    model_config = {"populate_by_name": True, "from_attributes": True}
