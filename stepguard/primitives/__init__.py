"""
StepGuard -- Shared Primitives
"""

from stepguard.primitives.common import (
    CheckStatus,
    DriftStatus,
    EnforcementPolicy,
    GateStatus,
    StepGuardBaseModel,
    iso_timestamp,
    utc_now,
)

__all__ = [
    "CheckStatus",
    "DriftStatus",
    "EnforcementPolicy",
    "GateStatus",
    "StepGuardBaseModel",
    "iso_timestamp",
    "utc_now",
]
