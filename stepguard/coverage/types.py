"""
StepGuard -- Coverage Types
"""

from __future__ import annotations

from pydantic import Field

from stepguard.frameworks.types import UndefinedStep
from stepguard.primitives.common import GateStatus, StepGuardBaseModel


class CoverageResult(StepGuardBaseModel):
    """
    Outcome of reconciling declared steps against discovered bindings.

    DEGRADED means the check could not be run (no profile, no tool, no
    features); BLOCKED means it ran and found undefined or pending steps.
    """

    status: GateStatus
    framework: str | None = None
    total_steps: int = 0
    matched: int = 0
    undefined: int = 0
    pending: int = 0
    details: list[UndefinedStep] = Field(default_factory=list)
    message: str = ""
    exit_code: int | None = None
    timed_out: bool = False
