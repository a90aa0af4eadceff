"""
StepGuard -- Step Quality Analysis

Static classification of step binding bodies: empty, tautological, or
missing an assertion.
"""

from stepguard.quality.analyzer import (
    HeuristicStrategy,
    LanguageStrategy,
    PythonStrategy,
    QualityAnalyzer,
    degraded_note,
)
from stepguard.quality.classify import build_report, classify, finding_for
from stepguard.quality.types import (
    BindingBody,
    DefectKind,
    ParserTier,
    QualityFinding,
    QualityReport,
    Severity,
    StepBinding,
    StepKind,
)

__all__ = [
    "BindingBody",
    "DefectKind",
    "HeuristicStrategy",
    "LanguageStrategy",
    "ParserTier",
    "PythonStrategy",
    "QualityAnalyzer",
    "QualityFinding",
    "QualityReport",
    "Severity",
    "StepBinding",
    "StepKind",
    "build_report",
    "classify",
    "degraded_note",
    "finding_for",
]
