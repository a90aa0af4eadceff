"""
StepGuard -- Binding Classification

One classification shared by every analysis tier. The tiers differ only
in how they extract BindingBody facts; the verdict on those facts is
decided here, first match wins:

  1. EMPTY_BODY    no reachable statement beyond placeholders
  2. TAUTOLOGY     at least one assertion, and every assertion is a
                   literal truth
  3. NO_ASSERTION  "then" bindings only: no assertion and no raise

An empty body outranks a tautology, but placeholders do not end the
body: `pass` followed by `assert True` is a TAUTOLOGY, since the assert
still runs. Only statements after a top-level return or raise are
unreachable.
"""

from __future__ import annotations

from collections.abc import Iterable

from stepguard.primitives.common import GateStatus
from stepguard.quality.types import (
    DefectKind,
    ParserTier,
    QualityFinding,
    QualityReport,
    Severity,
    StepBinding,
    StepKind,
)

_MESSAGES: dict[DefectKind, str] = {
    DefectKind.EMPTY_BODY: "Step body has no executable statements",
    DefectKind.TAUTOLOGY: "Every assertion in the step tests a literal truth and can never fail",
    DefectKind.NO_ASSERTION: "Then step neither asserts nor raises",
}


def classify(binding: StepBinding) -> DefectKind | None:
    body = binding.body
    if body.statement_count == 0:
        return DefectKind.EMPTY_BODY
    if body.assertion_count > 0 and body.tautology_count >= body.assertion_count:
        return DefectKind.TAUTOLOGY
    if binding.step_kind is StepKind.THEN and body.assertion_count == 0 and not body.raises:
        return DefectKind.NO_ASSERTION
    return None


def finding_for(binding: StepBinding) -> QualityFinding | None:
    """At most one FAIL finding per binding."""
    defect = classify(binding)
    if defect is None:
        return None
    return QualityFinding(
        step_label=binding.label,
        file=binding.file,
        line=binding.line,
        defect_kind=defect,
        severity=Severity.FAIL,
        message=_MESSAGES[defect],
    )


def parse_error_finding(file: str, error: Exception) -> QualityFinding:
    return QualityFinding(
        step_label="(parse error)",
        file=file,
        line=0,
        defect_kind=DefectKind.PARSE_ERROR,
        severity=Severity.WARN,
        message=str(error) or type(error).__name__,
    )


def build_report(
    language: str,
    parser: ParserTier,
    bindings: Iterable[StepBinding],
    extra_findings: Iterable[QualityFinding] = (),
    parser_note: str | None = None,
) -> QualityReport:
    bindings = list(bindings)
    details = [f for f in (finding_for(b) for b in bindings) if f is not None]
    details.extend(extra_findings)

    fail_count = sum(1 for f in details if f.severity is Severity.FAIL)
    return QualityReport(
        status=GateStatus.BLOCKED if fail_count else GateStatus.PASS,
        language=language,
        parser=parser,
        parser_note=parser_note,
        total_steps=len(bindings),
        quality_pass=len(bindings) - fail_count,
        quality_fail=fail_count,
        details=details,
    )
