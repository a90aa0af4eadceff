"""
StepGuard -- Step Quality Analyzer

Classifies every step binding under a directory as sound or defective.

Capability tiers, highest first:
  1. structural  a real syntax tree (Python: stdlib `ast`)
  2. heuristic   language-aware pattern scanning; always returns results,
                 and the report carries a parser_note saying so

Languages are a strategy table. Each LanguageStrategy offers
try_structural_parse (None when the tier does not exist for that
language) and heuristic_scan. Adding a language is one table entry.

A file the structural tier cannot parse yields one PARSE_ERROR warning
and analysis continues with the remaining files.
"""

from __future__ import annotations

import os
from abc import ABC
from pathlib import Path

import structlog

from stepguard.config import QualityConfig
from stepguard.frameworks.types import Language, parse_language
from stepguard.quality.classify import build_report, parse_error_finding
from stepguard.quality.heuristics import (
    GENERIC_RULES,
    LANGUAGE_RULES,
    HeuristicScanner,
    ScannerRules,
)
from stepguard.quality.python_ast import extract_bindings
from stepguard.quality.types import ParserTier, QualityFinding, QualityReport, StepBinding

logger = structlog.get_logger(system="stepguard.quality")

_SKIPPED_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "venv", "target", "bin", "obj"})
# ast.parse raises RecursionError or MemoryError on deeply nested input
_PARSE_FAILURES = (SyntaxError, UnicodeDecodeError, ValueError, RecursionError, MemoryError)


def degraded_note(language: str) -> str:
    return f"DEGRADED_ANALYSIS: No AST parser available for {language}. Using regex heuristics."


class LanguageStrategy(ABC):
    """Both analysis tiers for one language."""

    def __init__(self, rules: ScannerRules, config: QualityConfig) -> None:
        self.language = rules.language
        self.extensions = rules.extensions
        self._config = config
        self._scanner = HeuristicScanner(
            rules,
            assertion_keywords=config.assertion_keywords,
            lookahead=config.heuristic_lookahead,
        )

    @property
    def has_structural_tier(self) -> bool:
        return False

    def try_structural_parse(self, path: Path) -> list[StepBinding] | None:
        return None

    def heuristic_scan(self, path: Path) -> list[StepBinding]:
        return self._scanner.scan(path)

    def accepts(self, path: Path) -> bool:
        return not self.extensions or path.suffix in self.extensions


class PythonStrategy(LanguageStrategy):
    @property
    def has_structural_tier(self) -> bool:
        return True

    def try_structural_parse(self, path: Path) -> list[StepBinding] | None:
        return extract_bindings(path, self._config.assertion_keywords)


class HeuristicStrategy(LanguageStrategy):
    """Languages with no structural parser in this toolchain."""


_STRATEGY_TYPES: dict[str, type[LanguageStrategy]] = {
    Language.PYTHON: PythonStrategy,
    Language.JAVASCRIPT: HeuristicStrategy,
    Language.TYPESCRIPT: HeuristicStrategy,
    Language.GO: HeuristicStrategy,
    Language.JAVA: HeuristicStrategy,
    Language.RUST: HeuristicStrategy,
    Language.CSHARP: HeuristicStrategy,
}


def _walk_files(root: Path) -> list[Path]:
    found: list[Path] = []
    for current, dirs, files in os.walk(root):
        dirs[:] = sorted(d for d in dirs if d not in _SKIPPED_DIRS)
        found.extend(Path(current) / name for name in sorted(files))
    return found


class QualityAnalyzer:
    """Runs the best available tier per file and builds a QualityReport."""

    def __init__(self, config: QualityConfig | None = None) -> None:
        self._config = config or QualityConfig()
        self._strategies: dict[str, LanguageStrategy] = {
            language: strategy_type(LANGUAGE_RULES[language], self._config)
            for language, strategy_type in _STRATEGY_TYPES.items()
        }
        self._log = logger

    def strategy_for(self, language: str) -> LanguageStrategy:
        """Known languages get their own strategy; anything else the generic scanner."""
        resolved = parse_language(language)
        if resolved is not None:
            return self._strategies[resolved]
        return HeuristicStrategy(GENERIC_RULES, self._config)

    def analyze(
        self,
        directory: str | Path,
        language: str,
        *,
        heuristic_only: bool = False,
    ) -> QualityReport:
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"Step definitions directory not found: {root}")

        strategy = self.strategy_for(language)
        resolved = parse_language(language)
        label = str(resolved) if resolved is not None else language.strip().lower()
        structural = strategy.has_structural_tier and not heuristic_only

        bindings: list[StepBinding] = []
        parse_errors: list[QualityFinding] = []
        for path in _walk_files(root):
            if not strategy.accepts(path):
                continue
            if structural:
                try:
                    parsed = strategy.try_structural_parse(path)
                except _PARSE_FAILURES as exc:
                    self._log.warning("step_file_unparseable", file=str(path), error=str(exc))
                    parse_errors.append(parse_error_finding(str(path), exc))
                    continue
                if parsed is not None:
                    bindings.extend(parsed)
                    continue
            bindings.extend(strategy.heuristic_scan(path))

        report = build_report(
            language=label,
            parser=ParserTier.AST if structural else ParserTier.REGEX,
            bindings=bindings,
            extra_findings=parse_errors,
            parser_note=None if structural else degraded_note(label),
        )
        self._log.info(
            "quality_analyzed",
            language=label,
            parser=str(report.parser),
            steps=report.total_steps,
            failures=report.quality_fail,
            status=str(report.status),
        )
        return report
