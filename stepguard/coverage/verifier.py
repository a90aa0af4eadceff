"""
StepGuard -- Coverage Verifier

Reconciles the steps declared in .feature files against the bindings
a BDD framework can actually find, by running the framework's dry run
once and reading its report.

Outcomes:
  PASS      the dry run ran and reported no undefined or pending steps
  BLOCKED   undefined + pending > 0
  DEGRADED  the check could not run: no features, no profile, or the
            framework's executable is not on PATH

Nothing raised by the external tool escapes verify(). A timeout keeps
whatever output was produced and parses it; a timeout with no output,
or a tool that cannot be launched at all, is DEGRADED.
"""

from __future__ import annotations

import shutil
import subprocess
import time
from pathlib import Path

import structlog

from stepguard.config import CoverageConfig
from stepguard.coverage.types import CoverageResult
from stepguard.frameworks.grammars import get_grammar
from stepguard.frameworks.types import DryRunCounts, FrameworkProfile
from stepguard.integrity.canonicalizer import GHERKIN_STEP_RE, list_feature_files
from stepguard.primitives.common import GateStatus

logger = structlog.get_logger(system="stepguard.coverage")


def count_feature_steps(feature_files: list[Path]) -> int:
    total = 0
    for feature_file in feature_files:
        text = feature_file.read_text(encoding="utf-8", errors="replace")
        total += sum(1 for line in text.splitlines() if GHERKIN_STEP_RE.match(line))
    return total


def _as_text(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


class CoverageVerifier:
    """Runs one framework dry run per call and classifies the result."""

    def __init__(
        self,
        config: CoverageConfig | None = None,
        project_root: Path | None = None,
    ) -> None:
        self._config = config or CoverageConfig()
        self._project_root = project_root
        self._log = logger

    def verify(
        self,
        features_dir: str | Path,
        profile: FrameworkProfile | None,
    ) -> CoverageResult:
        features = Path(features_dir)
        if not features.is_dir():
            return self._degraded(f"Features directory not found: {features}")

        feature_files = list_feature_files(features)
        if not feature_files:
            return self._degraded(f"No .feature files found in {features}")

        if profile is None:
            return self._degraded(
                "No BDD framework detected. Step coverage cannot be verified."
            )

        executable = profile.executable
        if shutil.which(executable) is None:
            return self._degraded(
                f"Framework tool not found: {executable}. "
                "Install it to enable step verification.",
                framework=profile.name,
            )

        grammar = get_grammar(profile.output_grammar)
        if grammar is None:
            return self._degraded(
                f"No output grammar registered for {profile.output_grammar!r}",
                framework=profile.name,
            )

        total_steps = count_feature_steps(feature_files)
        run = self._run_dry_run(profile)
        if run is None:
            return self._degraded(
                f"Could not launch {executable}; step coverage cannot be verified.",
                framework=profile.name,
            )
        output, exit_code, timed_out = run
        if timed_out and not output.strip():
            return self._degraded(
                f"{executable} dry run timed out after "
                f"{self._config.dry_run_timeout_s:.0f}s with no output; "
                "step coverage cannot be verified.",
                framework=profile.name,
            )

        counts: DryRunCounts = grammar.parse(output)
        details = counts.details[: self._config.max_detail_lines]
        matched = max(0, total_steps - counts.undefined - counts.pending)
        incomplete = counts.undefined + counts.pending > 0
        status = GateStatus.BLOCKED if incomplete else GateStatus.PASS

        if incomplete:
            message = (
                f"{counts.undefined} undefined and {counts.pending} pending "
                f"of {total_steps} steps"
            )
        else:
            message = f"All {total_steps} steps have bindings"
        if timed_out:
            message += f" (dry run timed out after {self._config.dry_run_timeout_s:.0f}s)"

        self._log.info(
            "coverage_verified",
            framework=profile.name,
            status=str(status),
            total=total_steps,
            undefined=counts.undefined,
            pending=counts.pending,
            exit_code=exit_code,
        )
        return CoverageResult(
            status=status,
            framework=profile.name,
            total_steps=total_steps,
            matched=matched,
            undefined=counts.undefined,
            pending=counts.pending,
            details=details,
            message=message,
            exit_code=exit_code,
            timed_out=timed_out,
        )

    # ── Private helpers ─────────────────────────────────────────────────────

    def _run_dry_run(self, profile: FrameworkProfile) -> tuple[str, int | None, bool] | None:
        """
        Run the dry run with stderr merged into stdout.

        Returns (output, exit_code, timed_out), or None when the process
        could not be started.
        """
        cwd = str(self._project_root) if self._project_root is not None else None
        start = time.monotonic()
        try:
            proc = subprocess.run(
                list(profile.dry_run_invocation),
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=self._config.dry_run_timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            self._log.warning(
                "dry_run_timeout",
                framework=profile.name,
                timeout_s=self._config.dry_run_timeout_s,
            )
            return _as_text(exc.output), None, True
        except OSError as exc:
            self._log.warning("dry_run_launch_failed", framework=profile.name, error=str(exc))
            return None

        self._log.debug(
            "dry_run_complete",
            framework=profile.name,
            exit_code=proc.returncode,
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )
        return proc.stdout or "", proc.returncode, False

    def _degraded(self, message: str, framework: str | None = None) -> CoverageResult:
        self._log.info("coverage_degraded", framework=framework, reason=message)
        return CoverageResult(
            status=GateStatus.DEGRADED,
            framework=framework,
            message=message,
        )
