"""
StepGuard -- Integrity Checker

Runs every tamper-evidence channel for one corpus path and aggregates:

  digest  context.json record        always
  anchor  git note on HEAD           file input inside a repository
  drift   working tree against HEAD  file input inside a repository

Git channels are SKIPPED for directory input (a directory has no single
blob to diff) and outside a repository.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from stepguard.config import IntegrityConfig
from stepguard.errors import HistoryError
from stepguard.integrity.history import GitHistory
from stepguard.integrity.store import IntegrityStore, derive_artifact_root
from stepguard.integrity.types import IntegrityCheckResult
from stepguard.primitives.common import EnforcementPolicy, utc_now
from stepguard.verdict.aggregator import Verdict, aggregate

logger = structlog.get_logger(system="stepguard.verdict")


class IntegrityChecker:
    def __init__(
        self,
        config: IntegrityConfig | None = None,
        artifact_root: Path | None = None,
    ) -> None:
        self._config = config or IntegrityConfig()
        self._artifact_root = artifact_root
        self._log = logger

    def collect(self, path: str | Path) -> IntegrityCheckResult:
        """Per-channel results, without a verdict."""
        target = Path(path)
        root = self._artifact_root or derive_artifact_root(target)
        store = IntegrityStore(root, self._config)

        record = store.read_record()
        result = IntegrityCheckResult(
            path=str(target),
            digest=store.verify(target),
            current_digest=store.digest_for(store.hash_input_for(target, record)),
            stored_digest=record.digest if record is not None else None,
            checked_at=utc_now(),
        )

        if target.is_file():
            history = GitHistory(target.parent, self._config)
            if history.is_repository():
                try:
                    result.anchor = history.verify_anchor(target)
                    result.drift = history.check_drift(target)
                except HistoryError as exc:
                    self._log.warning("history_check_failed", path=str(target), error=str(exc))

        return result

    def check(
        self,
        path: str | Path,
        policy: EnforcementPolicy,
    ) -> Verdict:
        result = self.collect(path)
        verdict = aggregate(result.digest, result.anchor, result.drift, policy)
        self._log.info(
            "integrity_verdict",
            path=result.path,
            status=str(verdict.overall_status),
            digest=str(result.digest),
            anchor=str(result.anchor),
            drift=str(result.drift),
            policy=str(policy),
        )
        return verdict

