"""
StepGuard -- Coverage Verification

Dry-runs the project's BDD framework and checks that every declared
step has a binding.
"""

from stepguard.coverage.types import CoverageResult
from stepguard.coverage.verifier import CoverageVerifier, count_feature_steps

__all__ = [
    "CoverageResult",
    "CoverageVerifier",
    "count_feature_steps",
]
