"""
StepGuard -- Assertion Canonicalizer

Extracts the ordered step-text corpus that the integrity digest covers.

Accepted inputs:
  - a directory of Gherkin .feature files (top level only)
  - a single .feature file
  - a legacy Markdown test-spec document using **Given**: / **When**: /
    **Then**: markers

Gherkin contract: files in byte-wise lexicographic order, step lines in
document order within each file, whitespace normalized (leading and
trailing stripped, internal runs collapsed to one space). Re-indenting a
step or inserting blank lines never changes the corpus.

Legacy contract: marked lines with trailing whitespace stripped, then
sorted. Legacy documents carry no stable ordering guarantee, so the sort
is what makes the digest deterministic.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from stepguard.integrity.types import (
    AssertionCorpus,
    CorpusSource,
    LegacyDocument,
    MissingSource,
    ScenarioDirectory,
    ScenarioFile,
)

logger = structlog.get_logger(system="stepguard.integrity.canonicalizer")

FEATURE_SUFFIX = ".feature"

STEP_KEYWORDS: tuple[str, ...] = ("Given", "When", "Then", "And", "But")
LEGACY_KEYWORDS: tuple[str, ...] = ("Given", "When", "Then")

# A Gherkin step: optional indentation, keyword, at least one whitespace char
GHERKIN_STEP_RE = re.compile(r"^\s*(?:" + "|".join(STEP_KEYWORDS) + r")\s")
LEGACY_STEP_RE = re.compile(r"^\*\*(?:" + "|".join(LEGACY_KEYWORDS) + r")\*\*:")

_WHITESPACE_RUN = re.compile(r"\s+")


def is_step_line(line: str) -> bool:
    """True for a Gherkin step line or a legacy marked line."""
    return bool(GHERKIN_STEP_RE.match(line) or LEGACY_STEP_RE.match(line))


def normalize_step(line: str) -> str:
    return _WHITESPACE_RUN.sub(" ", line).strip()


def list_feature_files(directory: Path) -> list[Path]:
    """Top-level .feature files sorted by name using byte order."""
    files = [p for p in directory.iterdir() if p.is_file() and p.name.endswith(FEATURE_SUFFIX)]
    return sorted(files, key=lambda p: p.name.encode("utf-8"))


def resolve_source(path: str | Path) -> CorpusSource:
    """Classify a path once; downstream code only sees the tagged result."""
    p = Path(path)
    if p.is_dir():
        return ScenarioDirectory(path=p, files=list_feature_files(p))
    if p.is_file():
        if p.name.endswith(FEATURE_SUFFIX):
            return ScenarioFile(path=p)
        return LegacyDocument(path=p)
    return MissingSource(path=p)


def _read_lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8", errors="replace").splitlines()


def _gherkin_steps(path: Path) -> list[str]:
    return [normalize_step(line) for line in _read_lines(path) if GHERKIN_STEP_RE.match(line)]


def _legacy_steps(path: Path) -> list[str]:
    lines = [line.rstrip() for line in _read_lines(path) if LEGACY_STEP_RE.match(line)]
    return sorted(lines, key=lambda s: s.encode("utf-8"))


def extract_corpus(source: CorpusSource) -> AssertionCorpus:
    """Build the corpus for an already-resolved source."""
    lines: list[str] = []
    if isinstance(source, ScenarioDirectory):
        for feature_file in source.files:
            lines.extend(_gherkin_steps(feature_file))
    elif isinstance(source, ScenarioFile):
        lines = _gherkin_steps(source.path)
    elif isinstance(source, LegacyDocument):
        lines = _legacy_steps(source.path)

    logger.debug(
        "corpus_extracted",
        source_kind=str(source.kind),
        path=str(source.path),
        lines=len(lines),
    )
    return AssertionCorpus(source=source, lines=tuple(lines))


def canonicalize(path: str | Path) -> AssertionCorpus:
    """Resolve and extract in one call."""
    return extract_corpus(resolve_source(path))
