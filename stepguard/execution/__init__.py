"""
StepGuard -- Execution Verification

Reconciles a captured test run against the scenarios the corpus declares.
"""

from stepguard.execution.types import ExecutionReport, ExecutionStatus, RunCounts
from stepguard.execution.verifier import (
    count_expected_scenarios,
    parse_test_output,
    verify_execution,
)

__all__ = [
    "ExecutionReport",
    "ExecutionStatus",
    "RunCounts",
    "count_expected_scenarios",
    "parse_test_output",
    "verify_execution",
]
