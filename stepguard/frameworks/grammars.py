"""
StepGuard -- Dry-Run Output Grammars

Each BDD tool reports undefined and pending steps differently. A grammar
turns one dry-run transcript (stdout and stderr combined) into counts.

Strategy per grammar:
  1. If the tool printed a step summary (e.g. "12 steps (2 undefined,
     10 skipped)"), trust the summary numbers.
  2. Otherwise count the lines that mention an undefined/pending marker.
     This over-counts on chatty output but never under-counts, which is
     the safe direction for a gate.

Grammars are registered in GRAMMARS keyed by name. Supporting a new tool
means adding one OutputGrammar subclass and one table entry; the coverage
verifier's control flow is untouched.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from stepguard.frameworks.types import DryRunCounts, UndefinedStep

_STEP_LINE = re.compile(r"^\s*(?:[^\w\s]\s*)?(?:Given|When|Then|And|But)\b")


def _count_lines(output: str, pattern: re.Pattern[str]) -> int:
    return sum(1 for line in output.splitlines() if pattern.search(line))


def _summary_number(summary: str, label: str) -> int:
    match = re.search(rf"(\d+)\s+{label}", summary, re.IGNORECASE)
    return int(match.group(1)) if match else 0


class OutputGrammar(ABC):
    """Parses one framework's dry-run transcript."""

    name: str = ""
    max_details: int = 20

    @abstractmethod
    def parse(self, output: str) -> DryRunCounts:
        ...

    def _details_from(self, lines: list[str]) -> list[UndefinedStep]:
        return [UndefinedStep(step=line.strip()) for line in lines[: self.max_details]]


class LineCountGrammar(OutputGrammar):
    """
    Summary-first, line-count fallback grammar.

    Subclasses set the marker patterns; most Cucumber-family tools share
    the "N steps (a undefined, b pending, ...)" summary shape.
    """

    undefined_pattern: re.Pattern[str] = re.compile(r"undefined")
    pending_pattern: re.Pattern[str] | None = re.compile(r"pending")
    summary_pattern: re.Pattern[str] | None = re.compile(
        r"^\s*\d+\s+steps?\s*\(([^)]*)\)", re.IGNORECASE | re.MULTILINE,
    )

    def parse(self, output: str) -> DryRunCounts:
        undefined, pending = self._from_summary(output)
        if undefined is None:
            undefined = _count_lines(output, self.undefined_pattern)
            pending = (
                _count_lines(output, self.pending_pattern)
                if self.pending_pattern is not None
                else 0
            )
        return DryRunCounts(
            undefined=undefined,
            pending=pending or 0,
            details=self._details(output) if undefined else [],
        )

    def _from_summary(self, output: str) -> tuple[int | None, int | None]:
        if self.summary_pattern is None:
            return None, None
        match = self.summary_pattern.search(output)
        if match is None:
            return None, None
        summary = match.group(1)
        return _summary_number(summary, "undefined"), _summary_number(summary, "pending")

    def _details(self, output: str) -> list[UndefinedStep]:
        hits = [line for line in output.splitlines() if self.undefined_pattern.search(line)]
        return self._details_from(hits)


class PytestBddGrammar(LineCountGrammar):
    """pytest --collect-only: missing step definitions surface as collection errors."""

    name = "pytest-bdd"
    undefined_pattern = re.compile(
        r"StepDefNotFound|StepDefinitionNotFoundError|ERRORS|no tests ran",
    )
    pending_pattern = None
    summary_pattern = None

    def parse(self, output: str) -> DryRunCounts:
        undefined = _count_lines(output, self.undefined_pattern)
        details: list[UndefinedStep] = []
        if re.search(r"StepDefNotFound|StepDefinitionNotFoundError|no tests ran", output, re.IGNORECASE):
            hits = [
                line
                for line in output.splitlines()
                if re.search(r"StepDefNotFound|StepDefinitionNotFoundError|ERRORS", line)
            ]
            details = self._details_from(hits)
        return DryRunCounts(undefined=undefined, pending=0, details=details)


class BehaveGrammar(LineCountGrammar):
    """behave --dry-run --strict: "N steps passed, F failed, S skipped, U undefined"."""

    name = "behave"
    undefined_pattern = re.compile(r"undefined")
    pending_pattern = re.compile(r"pending|skipped")
    summary_pattern = re.compile(
        r"^\s*\d+\s+steps?\s+passed,(.*)$", re.IGNORECASE | re.MULTILINE,
    )

    def _from_summary(self, output: str) -> tuple[int | None, int | None]:
        match = self.summary_pattern.search(output) if self.summary_pattern else None
        if match is None:
            return None, None
        summary = match.group(1)
        # In a dry run nothing executes, so "skipped" only means not-yet-run,
        # never pending; behave has no separate pending count.
        return _summary_number(summary, "undefined"), 0


class CucumberJsGrammar(LineCountGrammar):
    """cucumber-js --dry-run --strict: undefined steps are printed with an "Undefined" marker."""

    name = "@cucumber/cucumber"
    undefined_pattern = re.compile(r"Undefined")
    pending_pattern = re.compile(r"Pending")

    def _details(self, output: str) -> list[UndefinedStep]:
        lines = output.splitlines()
        hits: list[str] = []
        for idx, line in enumerate(lines):
            if not self.undefined_pattern.search(line):
                continue
            # The step text is printed on the line above the marker
            for candidate in (lines[idx - 1] if idx > 0 else "", line):
                if _STEP_LINE.match(candidate):
                    hits.append(candidate)
                    break
        return self._details_from(hits)


class GodogGrammar(LineCountGrammar):
    name = "godog"
    undefined_pattern = re.compile(r"undefined")
    pending_pattern = re.compile(r"pending")


class CucumberJvmGrammar(LineCountGrammar):
    name = "cucumber-jvm"
    undefined_pattern = re.compile(r"Undefined")
    pending_pattern = re.compile(r"Pending")


class CucumberRsGrammar(LineCountGrammar):
    """cucumber-rs has no dry run; skipped steps stand in for undefined ones."""

    name = "cucumber-rs"
    undefined_pattern = re.compile(r"skipped|undefined")
    pending_pattern = None

    def _from_summary(self, output: str) -> tuple[int | None, int | None]:
        match = self.summary_pattern.search(output) if self.summary_pattern else None
        if match is None:
            return None, None
        summary = match.group(1)
        return _summary_number(summary, "skipped") + _summary_number(summary, "undefined"), 0


class ReqnrollGrammar(LineCountGrammar):
    name = "reqnroll"
    undefined_pattern = re.compile(r"Binding|StepDefinitionMissing|undefined")
    pending_pattern = None
    summary_pattern = None


GRAMMARS: dict[str, OutputGrammar] = {
    grammar.name: grammar
    for grammar in (
        PytestBddGrammar(),
        BehaveGrammar(),
        CucumberJsGrammar(),
        GodogGrammar(),
        CucumberJvmGrammar(),
        CucumberRsGrammar(),
        ReqnrollGrammar(),
    )
}


def get_grammar(name: str) -> OutputGrammar | None:
    return GRAMMARS.get(name)
