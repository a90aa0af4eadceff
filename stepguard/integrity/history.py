"""
StepGuard -- Version-History Integrity Channel

The secondary, tamper-resistant copy of a corpus digest lives in a git
note on HEAD (namespace refs/notes/testify by default). Changing it means
rewriting history, which is far more visible than editing context.json.

Also checks the working tree for uncommitted edits to step lines.

Drift rule: a diff against HEAD counts as `modified` only if an added or
removed line is itself a step line. This is a line-diff heuristic and is
deliberately conservative: a hunk that only reformats context around a
step never touches the step line itself, but a changed step line always
shows up as +/-.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path

import structlog

from stepguard.config import IntegrityConfig
from stepguard.errors import AnchorWriteError, HistoryError, NotAGitRepositoryError
from stepguard.integrity.canonicalizer import (
    LEGACY_KEYWORDS,
    STEP_KEYWORDS,
    canonicalize,
    extract_corpus,
    resolve_source,
)
from stepguard.integrity.store import compute_digest, like_for_like_input
from stepguard.integrity.types import AnchorRecord
from stepguard.primitives.common import CheckStatus, DriftStatus, iso_timestamp

logger = structlog.get_logger(system="stepguard.integrity.history")

_DIFF_GHERKIN_STEP = re.compile(r"^[+-]\s*(?:" + "|".join(STEP_KEYWORDS) + r") ")
_DIFF_LEGACY_STEP = re.compile(r"^[+-]\*\*(?:" + "|".join(LEGACY_KEYWORDS) + r")\*\*:")


def diff_touches_steps(diff_output: str) -> bool:
    """True when any added/removed line in a unified diff is a step line."""
    for line in diff_output.splitlines():
        if line.startswith(("+++", "---")):
            continue
        if _DIFF_LEGACY_STEP.match(line) or _DIFF_GHERKIN_STEP.match(line):
            return True
    return False


class GitHistory:
    """Thin synchronous wrapper over the git CLI for one working tree."""

    def __init__(
        self,
        workdir: Path | None = None,
        config: IntegrityConfig | None = None,
    ) -> None:
        self._workdir = (Path(workdir) if workdir is not None else Path.cwd()).resolve()
        self._config = config or IntegrityConfig()
        self._log = logger.bind(workdir=str(self._workdir))

    # ── Public API ──────────────────────────────────────────────────────────

    def is_repository(self) -> bool:
        try:
            proc = self._git("rev-parse", "--git-dir")
        except HistoryError:
            return False
        return proc.returncode == 0

    def anchor(self, path: str | Path) -> str:
        """Attach the current digest of `path` to HEAD as a note. Returns the digest."""
        self._require_repository()
        source = resolve_source(path)
        digest = compute_digest(extract_corpus(source), sentinel=self._config.empty_sentinel)
        note = AnchorRecord(
            digest=digest,
            generated_at=iso_timestamp(),
            origin_path=str(path),
            origin_kind=source.kind,
        ).to_note()

        proc = self._git(
            "notes", f"--ref={self._config.notes_ref}", "add", "-f", "-F", "-", "HEAD",
            stdin=note,
        )
        if proc.returncode != 0:
            self._log.warning("anchor_write_failed", stderr=proc.stderr.strip()[:200])
            raise AnchorWriteError(
                f"git notes add failed: {proc.stderr.strip() or 'unknown error'}"
            )

        self._log.info("anchor_written", digest=digest[:16], ref=self._config.notes_ref)
        return digest

    def read_anchor(self) -> AnchorRecord | None:
        self._require_repository()
        proc = self._git("notes", f"--ref={self._config.notes_ref}", "show", "HEAD")
        if proc.returncode != 0:
            return None
        return AnchorRecord.from_note(proc.stdout)

    def verify_anchor(self, path: str | Path) -> CheckStatus:
        """
        Compare the note on HEAD with the current digest of `path`.

        A single .feature file checked against a note taken over a whole
        directory is re-resolved to its parent directory, as the record
        store does.
        """
        anchor = self.read_anchor()
        if anchor is None:
            return CheckStatus.MISSING
        hash_input = like_for_like_input(path, anchored_directory=anchor.covers_directory)
        current = compute_digest(canonicalize(hash_input), sentinel=self._config.empty_sentinel)
        if current == anchor.digest:
            return CheckStatus.VALID
        self._log.warning(
            "anchor_mismatch",
            path=str(path),
            anchored=anchor.digest[:16],
            current=current[:16],
        )
        return CheckStatus.INVALID

    def check_drift(self, path: str | Path) -> DriftStatus:
        """Classify uncommitted changes to a scenario file."""
        self._require_repository()
        target = Path(path).resolve()
        if not target.is_file():
            raise FileNotFoundError(f"Scenario file not found: {target}")

        tracked = self._git("ls-files", "--error-unmatch", "--", str(target))
        if tracked.returncode != 0:
            return DriftStatus.UNTRACKED

        diff = self._git("diff", "HEAD", "--", str(target))
        if diff.returncode != 0:
            raise HistoryError(f"git diff failed: {diff.stderr.strip()}")
        if not diff.stdout.strip():
            return DriftStatus.CLEAN
        if diff_touches_steps(diff.stdout):
            self._log.info("working_tree_step_drift", path=str(target))
            return DriftStatus.MODIFIED
        return DriftStatus.CLEAN

    # ── Private helpers ─────────────────────────────────────────────────────

    def _require_repository(self) -> None:
        if not self.is_repository():
            raise NotAGitRepositoryError(f"Not a git repository: {self._workdir}")

    def _git(self, *args: str, stdin: str | None = None) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=str(self._workdir),
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self._config.git_timeout_s,
                check=False,
            )
        except FileNotFoundError as exc:
            raise NotAGitRepositoryError("git executable not found on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise HistoryError(f"git {args[0]} timed out") from exc
