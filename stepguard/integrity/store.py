"""
StepGuard -- Integrity Store

SHA-256 digests of the canonical assertion corpus, persisted in the
feature's context.json under a reserved key.

Algorithm:
  digest = SHA-256(UTF-8("\n".join(corpus lines)))
  empty corpus -> reserved sentinel (never the hash of "")

Layout (artifact root is the feature directory, e.g. specs/001-login/):
  <root>/tests/features/*.feature    directory input   -> root is 2 up
  <root>/tests/features/x.feature    single file input -> root is 3 up
  <root>/tests/test-specs.md         legacy document   -> root is 2 up
  <root>/context.json                record file

The artifact root is computed once by the caller (derive_artifact_root)
and passed in explicitly; the store never walks the filesystem to find it.

Writes are read-merge-write through a temp file and os.replace, so a
concurrent reader sees either the old or the new file, never a torn one.
Concurrent writers degrade to last-writer-wins, which is acceptable
because storing is idempotent.
"""

from __future__ import annotations

import contextlib
import hashlib
import os
import tempfile
from pathlib import Path
from typing import Any

import orjson
import structlog

from stepguard.config import IntegrityConfig
from stepguard.integrity.canonicalizer import FEATURE_SUFFIX, extract_corpus, resolve_source
from stepguard.integrity.types import (
    AssertionCorpus,
    IntegrityRecord,
    ScenarioDirectory,
    SourceKind,
)
from stepguard.primitives.common import CheckStatus, iso_timestamp

logger = structlog.get_logger(system="stepguard.integrity.store")

NO_ASSERTIONS = "NO_ASSERTIONS"


def compute_digest(corpus: AssertionCorpus, *, sentinel: str = NO_ASSERTIONS) -> str:
    """SHA-256 hex digest of the corpus, or the sentinel when it is empty."""
    if corpus.is_empty:
        return sentinel
    return hashlib.sha256(corpus.joined().encode("utf-8")).hexdigest()


def like_for_like_input(path: str | Path, *, anchored_directory: bool) -> Path:
    """
    A single .feature file checked against a digest taken over a whole
    directory is re-resolved to its parent directory.
    """
    p = Path(path)
    if anchored_directory and p.is_file() and p.name.endswith(FEATURE_SUFFIX):
        return p.parent
    return p


def derive_artifact_root(path: str | Path) -> Path:
    """Feature directory that owns the record for this corpus path."""
    p = Path(path)
    if p.is_dir():
        return p.parent.parent
    if p.name.endswith(FEATURE_SUFFIX):
        return p.parent.parent.parent
    return p.parent.parent


class IntegrityStore:
    """Computes, stores, and verifies corpus digests for one artifact root."""

    def __init__(
        self,
        artifact_root: Path,
        config: IntegrityConfig | None = None,
    ) -> None:
        self._root = Path(artifact_root)
        self._config = config or IntegrityConfig()
        self._log = logger.bind(artifact_root=str(self._root))

    @property
    def record_path(self) -> Path:
        return self._root / self._config.record_filename

    # ── Public API ──────────────────────────────────────────────────────────

    def digest_for(self, path: str | Path) -> str:
        return compute_digest(
            extract_corpus(resolve_source(path)),
            sentinel=self._config.empty_sentinel,
        )

    def store(self, path: str | Path) -> IntegrityRecord:
        """Compute the digest for `path` and merge it into the record file."""
        source = resolve_source(path)
        corpus = extract_corpus(source)
        digest = compute_digest(corpus, sentinel=self._config.empty_sentinel)

        if isinstance(source, ScenarioDirectory):
            record = IntegrityRecord(
                digest=digest,
                generated_at=iso_timestamp(),
                source_kind=SourceKind.DIRECTORY,
                source_directory=str(path),
                unit_count=source.file_count,
            )
        else:
            record = IntegrityRecord(
                digest=digest,
                generated_at=iso_timestamp(),
                source_kind=source.kind,
                source_document=str(path),
                unit_count=1,
            )

        document = self._read_document()
        document[self._config.record_key] = record.to_context_entry()
        self._write_document(document)

        self._log.info(
            "integrity_record_stored",
            digest=digest[:16],
            source_kind=str(record.source_kind),
            units=record.unit_count,
        )
        return record

    def read_record(self) -> IntegrityRecord | None:
        """The stored record, or None when the file or key is absent or invalid."""
        entry = self._read_document().get(self._config.record_key)
        if not isinstance(entry, dict):
            return None
        return IntegrityRecord.from_context_entry(entry)

    def hash_input_for(self, path: str | Path, record: IntegrityRecord | None) -> Path:
        """The path whose corpus is comparable with `record`."""
        return like_for_like_input(
            path, anchored_directory=record is not None and record.source_directory is not None,
        )

    def verify(self, path: str | Path) -> CheckStatus:
        """
        Recompute and compare against the stored digest.

        A single .feature file checked against a record that was stored for a
        whole directory is re-resolved to its parent directory, so the
        comparison is like-for-like.
        """
        record = self.read_record()
        if record is None:
            return CheckStatus.MISSING

        current = self.digest_for(self.hash_input_for(path, record))
        status = CheckStatus.VALID if current == record.digest else CheckStatus.INVALID
        if status is CheckStatus.INVALID:
            self._log.warning(
                "integrity_digest_mismatch",
                path=str(path),
                stored=record.digest[:16],
                current=current[:16],
            )
        return status

    # ── Private helpers ─────────────────────────────────────────────────────

    def _read_document(self) -> dict[str, Any]:
        try:
            raw = self.record_path.read_bytes()
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        try:
            document = orjson.loads(raw)
        except orjson.JSONDecodeError:
            self._log.warning("record_file_invalid_json", path=str(self.record_path))
            return {}
        return document if isinstance(document, dict) else {}

    def _write_document(self, document: dict[str, Any]) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        payload = orjson.dumps(document, option=orjson.OPT_INDENT_2) + b"\n"
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._config.record_filename}.",
            suffix=".tmp",
            dir=self._root,
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.record_path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
