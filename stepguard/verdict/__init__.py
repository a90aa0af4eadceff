"""
StepGuard -- Verdicts

Tamper-evidence decision table plus the coverage and quality gates.
"""

from stepguard.verdict.aggregator import Verdict, VerdictChecks, aggregate, apply_gates
from stepguard.verdict.service import IntegrityChecker

__all__ = [
    "IntegrityChecker",
    "Verdict",
    "VerdictChecks",
    "aggregate",
    "apply_gates",
]
