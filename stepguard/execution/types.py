"""
StepGuard -- Execution Verification Types
"""

from __future__ import annotations

import enum

from pydantic import Field

from stepguard.primitives.common import StepGuardBaseModel


class ExecutionStatus(enum.StrEnum):
    PASS = "PASS"
    NO_TESTS_RUN = "NO_TESTS_RUN"
    TESTS_FAILING = "TESTS_FAILING"
    INCOMPLETE = "INCOMPLETE"
    UNKNOWN = "UNKNOWN"

    @property
    def exit_code(self) -> int:
        return 0 if self in (ExecutionStatus.PASS, ExecutionStatus.UNKNOWN) else 1


class RunCounts(StepGuardBaseModel):
    """Test counts recovered from one runner's console summary."""

    passed: int = 0
    failed: int = 0
    total: int = 0
    runner: str | None = None


class ExecutionReport(StepGuardBaseModel):
    status: ExecutionStatus
    message: str = ""
    expected: int = 0
    actual: RunCounts = Field(default_factory=RunCounts)
