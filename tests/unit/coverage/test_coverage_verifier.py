"""
Unit tests for the coverage verifier.

The framework tool is never actually run: shutil.which and
subprocess.run are patched, mirroring how the static-analysis bridge
tests stub out their tools.
"""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING
from unittest.mock import patch

from stepguard.config import CoverageConfig
from stepguard.coverage.verifier import CoverageVerifier, count_feature_steps
from stepguard.frameworks.registry import DEFAULT_REGISTRY
from stepguard.integrity.canonicalizer import list_feature_files
from stepguard.primitives.common import GateStatus

if TYPE_CHECKING:
    from pathlib import Path

GODOG = DEFAULT_REGISTRY.get_strict("godog")

WHICH = "stepguard.coverage.verifier.shutil.which"
RUN = "stepguard.coverage.verifier.subprocess.run"


def _completed(stdout: str, returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["godog"], returncode=returncode, stdout=stdout)


class TestCountFeatureSteps:
    def test_counts_all_step_keywords(self, feature_dir: Path):
        assert count_feature_steps(list_feature_files(feature_dir)) == 10


# ── DEGRADED ─────────────────────────────────────────────────────────────────


class TestDegraded:
    def test_missing_directory(self, tmp_path: Path):
        result = CoverageVerifier().verify(tmp_path / "nope", GODOG)
        assert result.status == GateStatus.DEGRADED
        assert "Features directory not found" in result.message

    def test_no_feature_files(self, tmp_path: Path):
        result = CoverageVerifier().verify(tmp_path, GODOG)
        assert result.status == GateStatus.DEGRADED
        assert "No .feature files" in result.message

    def test_no_profile(self, feature_dir: Path):
        result = CoverageVerifier().verify(feature_dir, None)
        assert result.status == GateStatus.DEGRADED
        assert "No BDD framework detected" in result.message

    def test_tool_not_on_path(self, feature_dir: Path):
        with patch(WHICH, return_value=None), patch(RUN) as run:
            result = CoverageVerifier().verify(feature_dir, GODOG)
        run.assert_not_called()
        assert result.status == GateStatus.DEGRADED
        assert result.status.exit_code == 0
        assert result.framework == "godog"
        assert result.message == (
            "Framework tool not found: godog. Install it to enable step verification."
        )

    def test_tool_cannot_launch(self, feature_dir: Path):
        with patch(WHICH, return_value="/usr/bin/godog"), patch(
            RUN, side_effect=PermissionError("denied"),
        ):
            result = CoverageVerifier().verify(feature_dir, GODOG)
        assert result.status == GateStatus.DEGRADED
        assert "Could not launch godog" in result.message


# ── Dry Run ──────────────────────────────────────────────────────────────────


class TestDryRun:
    def test_undefined_steps_block(self, feature_dir: Path):
        output = "2 scenarios (2 undefined)\n10 steps (7 passed, 2 undefined, 1 pending)\n"
        with patch(WHICH, return_value="/usr/bin/godog"), patch(
            RUN, return_value=_completed(output, returncode=1),
        ):
            result = CoverageVerifier().verify(feature_dir, GODOG)
        assert result.status == GateStatus.BLOCKED
        assert result.status.exit_code == 1
        assert result.total_steps == 10
        assert result.undefined == 2
        assert result.pending == 1
        assert result.matched == 7
        assert result.exit_code == 1
        assert result.message == "2 undefined and 1 pending of 10 steps"

    def test_all_bound_passes(self, feature_dir: Path):
        output = "2 scenarios (2 passed)\n10 steps (10 passed)\n"
        with patch(WHICH, return_value="/usr/bin/godog"), patch(
            RUN, return_value=_completed(output),
        ):
            result = CoverageVerifier().verify(feature_dir, GODOG)
        assert result.status == GateStatus.PASS
        assert result.matched == 10
        assert result.message == "All 10 steps have bindings"

    def test_invocation(self, feature_dir: Path, tmp_path: Path):
        config = CoverageConfig(dry_run_timeout_s=12)
        with patch(WHICH, return_value="/usr/bin/godog"), patch(
            RUN, return_value=_completed("3 steps (3 passed)\n"),
        ) as run:
            CoverageVerifier(config, project_root=tmp_path).verify(feature_dir, GODOG)
        args, kwargs = run.call_args
        assert args[0] == ["godog", "--strict", "--no-colors", "--dry-run"]
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["timeout"] == 12
        assert kwargs["stderr"] == subprocess.STDOUT

    def test_timeout_parses_partial_output(self, feature_dir: Path):
        timeout = subprocess.TimeoutExpired(
            cmd=["godog"], timeout=1, output=b"10 steps (9 passed, 1 undefined)\n",
        )
        with patch(WHICH, return_value="/usr/bin/godog"), patch(RUN, side_effect=timeout):
            result = CoverageVerifier(CoverageConfig(dry_run_timeout_s=1)).verify(feature_dir, GODOG)
        assert result.status == GateStatus.BLOCKED
        assert result.timed_out is True
        assert result.exit_code is None
        assert result.undefined == 1
        assert "timed out" in result.message

    def test_timeout_without_output_is_degraded(self, feature_dir: Path):
        timeout = subprocess.TimeoutExpired(cmd=["godog"], timeout=1)
        with patch(WHICH, return_value="/usr/bin/godog"), patch(RUN, side_effect=timeout):
            result = CoverageVerifier().verify(feature_dir, GODOG)
        assert result.status == GateStatus.DEGRADED
        assert "timed out" in result.message

    def test_details_capped_by_config(self, feature_dir: Path):
        output = "\n".join(f"step {i} is undefined" for i in range(30))
        with patch(WHICH, return_value="/usr/bin/godog"), patch(
            RUN, return_value=_completed(output, returncode=1),
        ):
            result = CoverageVerifier(CoverageConfig(max_detail_lines=5)).verify(feature_dir, GODOG)
        assert result.undefined == 30
        assert len(result.details) == 5
        assert result.matched == 0
