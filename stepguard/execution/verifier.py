"""
StepGuard -- Execution Verifier

Checks a captured test run against the scenario corpus: did tests run
at all, did any fail, and did as many run as the corpus declares?

Runner summaries are recognised in priority order; the first runner
whose summary appears in the output wins:

  behave        "3 scenarios passed, 1 failed, 0 skipped"
  cucumber-js   "4 scenarios (3 passed, 1 failed)"
  jest/vitest   "Tests: 1 failed, 3 passed, 4 total"
  pytest        "=== 1 failed, 3 passed in 0.12s ==="
  go test       "--- PASS: TestX" / "--- FAIL: TestY" lines
  playwright    "3 passed" / "1 failed"
  mocha         "3 passing" / "1 failing"
"""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import Path

import structlog

from stepguard.execution.types import ExecutionReport, ExecutionStatus, RunCounts
from stepguard.integrity.canonicalizer import FEATURE_SUFFIX, list_feature_files

logger = structlog.get_logger(system="stepguard.execution")

_SCENARIO_RE = re.compile(r"^\s*(?:Scenario:|Scenario Outline:)")
_LEGACY_SPEC_RE = re.compile(r"^###\s+TS-\d+")


def _count_matching(path: Path, pattern: re.Pattern[str]) -> int:
    text = path.read_text(encoding="utf-8", errors="replace")
    return sum(1 for line in text.splitlines() if pattern.match(line))


def count_expected_scenarios(path: str | Path) -> int:
    """Scenarios a full run should execute; 0 when the path is missing."""
    p = Path(path)
    if p.is_dir():
        return sum(_count_matching(f, _SCENARIO_RE) for f in list_feature_files(p))
    if not p.is_file():
        return 0
    if p.name.endswith(FEATURE_SUFFIX):
        return _count_matching(p, _SCENARIO_RE)
    return _count_matching(p, _LEGACY_SPEC_RE)


# ── Runner summaries ─────────────────────────────────────────────────────────


def _last_int(pattern: str, text: str) -> int:
    found = re.findall(pattern, text)
    return int(found[-1]) if found else 0


def _behave(output: str) -> RunCounts | None:
    match = re.search(r"^\s*(\d+) scenarios? passed, (\d+) failed", output, re.MULTILINE)
    if match is None:
        return None
    passed, failed = int(match.group(1)), int(match.group(2))
    return RunCounts(passed=passed, failed=failed, total=passed + failed)


def _cucumber_js(output: str) -> RunCounts | None:
    match = re.search(r"^\s*(\d+) scenarios? \(([^)]*)\)", output, re.MULTILINE)
    if match is None:
        return None
    breakdown = match.group(2)
    return RunCounts(
        passed=_last_int(r"(\d+) passed", breakdown),
        failed=_last_int(r"(\d+) failed", breakdown),
        total=int(match.group(1)),
    )


def _jest(output: str) -> RunCounts | None:
    match = re.search(r"^\s*Tests:?\s+(.*\bpassed\b.*)$", output, re.MULTILINE)
    if match is None:
        return None
    summary = match.group(1)
    passed = _last_int(r"(\d+) passed", summary)
    failed = _last_int(r"(\d+) failed", summary)
    return RunCounts(passed=passed, failed=failed, total=passed + failed)


def _pytest(output: str) -> RunCounts | None:
    summaries = re.findall(r"^=+ (.*\b(?:passed|failed)\b.*) in [\d.]+s", output, re.MULTILINE)
    if not summaries:
        return None
    summary = summaries[-1]
    passed = _last_int(r"(\d+) passed", summary)
    failed = _last_int(r"(\d+) failed", summary)
    return RunCounts(passed=passed, failed=failed, total=passed + failed)


def _go_test(output: str) -> RunCounts | None:
    if not re.search(r"^(?:ok|FAIL)\s|--- (?:PASS|FAIL):", output, re.MULTILINE):
        return None
    passed = len(re.findall(r"--- PASS:", output))
    failed = len(re.findall(r"--- FAIL:", output))
    return RunCounts(passed=passed, failed=failed, total=passed + failed)


def _playwright(output: str) -> RunCounts | None:
    if not re.search(r"\d+ (?:passed|failed)", output):
        return None
    passed = _last_int(r"(\d+) passed", output)
    failed = _last_int(r"(\d+) failed", output)
    return RunCounts(passed=passed, failed=failed, total=passed + failed)


def _mocha(output: str) -> RunCounts | None:
    if not re.search(r"\d+ passing", output):
        return None
    passed = _last_int(r"(\d+) passing", output)
    failed = _last_int(r"(\d+) failing", output)
    return RunCounts(passed=passed, failed=failed, total=passed + failed)


RUNNER_PARSERS: tuple[tuple[str, Callable[[str], RunCounts | None]], ...] = (
    ("behave", _behave),
    ("cucumber-js", _cucumber_js),
    ("jest", _jest),
    ("pytest", _pytest),
    ("go", _go_test),
    ("playwright", _playwright),
    ("mocha", _mocha),
)


def parse_test_output(output: str) -> RunCounts:
    for runner, parser in RUNNER_PARSERS:
        counts = parser(output)
        if counts is not None:
            return counts.model_copy(update={"runner": runner})
    return RunCounts()


def verify_execution(path: str | Path, output: str) -> ExecutionReport:
    expected = count_expected_scenarios(path)
    actual = parse_test_output(output)

    if actual.total == 0:
        status = ExecutionStatus.NO_TESTS_RUN
        message = "Could not detect any test execution in output"
    elif actual.failed > 0:
        status = ExecutionStatus.TESTS_FAILING
        message = f"{actual.failed} tests failing - fix code before proceeding"
    elif expected > 0 and actual.total < expected:
        status = ExecutionStatus.INCOMPLETE
        message = f"Only {actual.total} tests run, expected {expected} from the scenario corpus"
    elif actual.passed > 0:
        status = ExecutionStatus.PASS
        message = f"All {actual.passed} tests passing"
    else:
        status = ExecutionStatus.UNKNOWN
        message = "Test output did not report passing or failing tests"

    logger.info(
        "execution_verified",
        status=str(status),
        runner=actual.runner,
        expected=expected,
        total=actual.total,
        failed=actual.failed,
    )
    return ExecutionReport(status=status, message=message, expected=expected, actual=actual)
