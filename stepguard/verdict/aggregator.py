"""
StepGuard -- Verdict Aggregator

Folds the tamper-evidence channels into one verdict, then layers the
coverage and quality gates on top.

Decision table, top to bottom, first match wins:

  digest invalid OR anchor invalid            BLOCKED
  working tree drift touches step lines       BLOCKED
  policy mandatory, neither channel valid     BLOCKED
  policy not mandatory, neither channel valid WARN
  otherwise                                   PASS

Coverage and quality answer a different question (completeness and
quality, not tampering), so they are separate gates: either one
BLOCKED blocks the verdict, and either one can be omitted.
"""

from __future__ import annotations

from pydantic import Field

from stepguard.coverage.types import CoverageResult
from stepguard.primitives.common import (
    CheckStatus,
    DriftStatus,
    EnforcementPolicy,
    GateStatus,
    StepGuardBaseModel,
)
from stepguard.quality.types import QualityReport

REASON_MODIFIED = "Assertions were modified since verification"
REASON_DRIFT = "Uncommitted changes to assertions detected"
REASON_MANDATORY = "Verification is mandatory but unverifiable: no valid integrity record or anchor"
REASON_OPTIONAL = "Unverifiable, verification optional: no valid integrity record or anchor"


class VerdictChecks(StepGuardBaseModel):
    integrity: CheckStatus
    anchor: CheckStatus
    drift: DriftStatus
    coverage: GateStatus | None = None
    quality: GateStatus | None = None


class Verdict(StepGuardBaseModel):
    overall_status: GateStatus
    reason: str = ""
    policy: EnforcementPolicy
    checks: VerdictChecks
    issues: list[str] = Field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return self.overall_status.exit_code


def aggregate(
    integrity: CheckStatus,
    anchor: CheckStatus,
    drift: DriftStatus,
    policy: EnforcementPolicy,
) -> Verdict:
    checks = VerdictChecks(integrity=integrity, anchor=anchor, drift=drift)
    verified = CheckStatus.VALID in (integrity, anchor)

    if CheckStatus.INVALID in (integrity, anchor):
        status, reason = GateStatus.BLOCKED, REASON_MODIFIED
    elif drift is DriftStatus.MODIFIED:
        status, reason = GateStatus.BLOCKED, REASON_DRIFT
    elif not verified and policy is EnforcementPolicy.MANDATORY:
        status, reason = GateStatus.BLOCKED, REASON_MANDATORY
    elif not verified:
        status, reason = GateStatus.WARN, REASON_OPTIONAL
    else:
        status, reason = GateStatus.PASS, ""

    return Verdict(
        overall_status=status,
        reason=reason,
        policy=policy,
        checks=checks,
        issues=[reason] if reason else [],
    )


def apply_gates(
    verdict: Verdict,
    coverage: CoverageResult | None = None,
    quality: QualityReport | None = None,
) -> Verdict:
    """
    Layer the coverage and quality gates over an integrity verdict.

    A BLOCKED gate blocks; a DEGRADED gate turns a PASS into a WARN,
    since the check could not run.
    """
    status = verdict.overall_status
    reason = verdict.reason
    issues = list(verdict.issues)
    checks = verdict.checks.model_copy()

    def block(message: str) -> None:
        nonlocal status, reason
        if status is not GateStatus.BLOCKED:
            status, reason = GateStatus.BLOCKED, message
        issues.append(message)

    def degrade(message: str) -> None:
        nonlocal status, reason
        if status is GateStatus.PASS:
            status, reason = GateStatus.WARN, message
        issues.append(message)

    if coverage is not None:
        checks.coverage = coverage.status
        if coverage.status is GateStatus.BLOCKED:
            block(
                f"Step coverage incomplete: {coverage.undefined} undefined, "
                f"{coverage.pending} pending"
            )
        elif coverage.status is GateStatus.DEGRADED:
            degrade(f"Step coverage unverifiable: {coverage.message}")

    if quality is not None:
        checks.quality = quality.status
        if quality.status is GateStatus.BLOCKED:
            block(f"Step quality failures: {quality.quality_fail} of {quality.total_steps} steps")

    return verdict.model_copy(
        update={
            "overall_status": status,
            "reason": reason,
            "checks": checks,
            "issues": issues,
        }
    )
