"""
Unit tests for the execution verifier: expected scenario counts, runner
summary parsing, and the resulting status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stepguard.execution.types import ExecutionStatus
from stepguard.execution.verifier import (
    count_expected_scenarios,
    parse_test_output,
    verify_execution,
)

if TYPE_CHECKING:
    from pathlib import Path


class TestCountExpectedScenarios:
    def test_directory(self, feature_dir: Path):
        # login: Scenario + Scenario Outline, checkout: Scenario
        assert count_expected_scenarios(feature_dir) == 3

    def test_single_feature_file(self, feature_dir: Path):
        assert count_expected_scenarios(feature_dir / "login.feature") == 2

    def test_legacy_document(self, tmp_path: Path):
        spec = tmp_path / "test-specs.md"
        spec.write_text("# Specs\n\n### TS-001 Login\n\n### TS-002 Logout\n\n#### TS-003 nested\n")
        assert count_expected_scenarios(spec) == 2

    def test_missing(self, tmp_path: Path):
        assert count_expected_scenarios(tmp_path / "nope") == 0


class TestParseTestOutput:
    @pytest.mark.parametrize(
        ("output", "runner", "passed", "failed", "total"),
        [
            (
                "1 feature passed, 0 failed, 0 skipped\n"
                "3 scenarios passed, 1 failed, 0 skipped\n"
                "12 steps passed, 1 failed, 0 skipped, 0 undefined\n",
                "behave", 3, 1, 4,
            ),
            ("4 scenarios (3 passed, 1 failed)\n12 steps (11 passed, 1 failed)\n", "cucumber-js", 3, 1, 4),
            (
                "Test Suites: 1 failed, 2 passed, 3 total\n"
                "Tests:       1 failed, 9 passed, 10 total\n",
                "jest", 9, 1, 10,
            ),
            ("============ 2 failed, 10 passed, 1 skipped in 1.23s ============\n", "pytest", 10, 2, 12),
            (
                "=== RUN   TestLogin\n--- PASS: TestLogin (0.00s)\n"
                "--- FAIL: TestLogout (0.01s)\nFAIL\nFAIL\texample.com/shop\t0.012s\n",
                "go", 1, 1, 2,
            ),
            ("Running 6 tests using 2 workers\n\n  5 passed (3.2s)\n  1 failed\n", "playwright", 5, 1, 6),
            ("  Login\n    ✓ accepts valid credentials\n\n  3 passing (20ms)\n  1 failing\n", "mocha", 3, 1, 4),
        ],
    )
    def test_runner_summaries(self, output, runner, passed, failed, total):
        counts = parse_test_output(output)
        assert counts.runner == runner
        assert (counts.passed, counts.failed, counts.total) == (passed, failed, total)

    def test_cucumber_total_is_scenario_count(self):
        counts = parse_test_output("5 scenarios (3 passed, 2 skipped)\n")
        assert (counts.passed, counts.failed, counts.total) == (3, 0, 5)

    def test_nothing_recognised(self):
        counts = parse_test_output("compiling...\ndone\n")
        assert counts.total == 0
        assert counts.runner is None


class TestVerifyExecution:
    def test_no_tests_run(self, feature_dir: Path):
        report = verify_execution(feature_dir, "")
        assert report.status == ExecutionStatus.NO_TESTS_RUN
        assert report.message == "Could not detect any test execution in output"
        assert report.status.exit_code == 1

    def test_failing(self, feature_dir: Path):
        report = verify_execution(feature_dir, "3 scenarios (2 passed, 1 failed)\n")
        assert report.status == ExecutionStatus.TESTS_FAILING
        assert report.message == "1 tests failing - fix code before proceeding"

    def test_incomplete(self, feature_dir: Path):
        report = verify_execution(feature_dir, "===== 2 passed in 0.10s =====\n")
        assert report.status == ExecutionStatus.INCOMPLETE
        assert report.expected == 3
        assert report.actual.total == 2

    def test_pass(self, feature_dir: Path):
        report = verify_execution(feature_dir, "===== 3 passed in 0.10s =====\n")
        assert report.status == ExecutionStatus.PASS
        assert report.message == "All 3 tests passing"
        assert report.status.exit_code == 0

    def test_pass_without_expectation(self, tmp_path: Path):
        report = verify_execution(tmp_path / "nope", "  1 passing (2ms)\n")
        assert report.status == ExecutionStatus.PASS

    def test_unknown(self, tmp_path: Path):
        report = verify_execution(tmp_path / "nope", "2 scenarios (2 skipped)\n")
        assert report.status == ExecutionStatus.UNKNOWN
        assert report.status.exit_code == 0
