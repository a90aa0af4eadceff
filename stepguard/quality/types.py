"""
StepGuard -- Step Quality Types
"""

from __future__ import annotations

import enum

from pydantic import Field

from stepguard.primitives.common import GateStatus, StepGuardBaseModel


class DefectKind(enum.StrEnum):
    EMPTY_BODY = "EMPTY_BODY"
    TAUTOLOGY = "TAUTOLOGY"
    NO_ASSERTION = "NO_ASSERTION"
    PARSE_ERROR = "PARSE_ERROR"


class Severity(enum.StrEnum):
    FAIL = "FAIL"
    WARN = "WARN"


class StepKind(enum.StrEnum):
    GIVEN = "given"
    WHEN = "when"
    THEN = "then"
    STEP = "step"  # generic registration (behave @step, godog s.Step, And/But)

    @classmethod
    def from_keyword(cls, keyword: str) -> StepKind:
        try:
            return cls(keyword.strip().lower())
        except ValueError:
            return cls.STEP


class ParserTier(enum.StrEnum):
    AST = "ast"
    REGEX = "regex"


class BindingBody(StepGuardBaseModel):
    """
    Facts about one binding body, as extracted by either tier.

    Only reachable code is counted: anything after a top-level return
    is ignored.
    """

    statement_count: int = 0   # executable statements, placeholders excluded
    assertion_count: int = 0
    tautology_count: int = 0   # assertions that test a literal truth
    raises: bool = False       # raise / throw / panic / error return


class StepBinding(StepGuardBaseModel):
    step_kind: StepKind
    step_text: str = ""
    function_name: str = ""
    file: str
    line: int
    body: BindingBody = Field(default_factory=BindingBody)

    @property
    def label(self) -> str:
        if self.step_text:
            return self.step_text
        if self.function_name:
            return self.function_name
        return f"({self.step_kind} step)"


class QualityFinding(StepGuardBaseModel):
    step_label: str = Field(alias="step")
    file: str
    line: int = 0
    defect_kind: DefectKind = Field(alias="issue")
    severity: Severity
    message: str = ""


class QualityReport(StepGuardBaseModel):
    status: GateStatus
    language: str
    parser: ParserTier
    parser_note: str | None = None
    total_steps: int = 0
    quality_pass: int = 0
    quality_fail: int = 0
    details: list[QualityFinding] = Field(default_factory=list)

    @property
    def warnings(self) -> list[QualityFinding]:
        return [f for f in self.details if f.severity is Severity.WARN]
