"""
StepGuard -- Integrity Types

Pydantic models for the assertion corpus and its integrity records.

The corpus source is a small tagged union resolved once at the
canonicalizer boundary; everything downstream works on the resulting
AssertionCorpus and never re-inspects the original path shape.
"""

from __future__ import annotations

import enum
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field

from stepguard.primitives.common import CheckStatus, DriftStatus, StepGuardBaseModel


class SourceKind(enum.StrEnum):
    DIRECTORY = "directory"
    SCENARIO_FILE = "scenario_file"
    LEGACY_DOCUMENT = "legacy_document"
    MISSING = "missing"


class ScenarioDirectory(StepGuardBaseModel):
    kind: Literal[SourceKind.DIRECTORY] = SourceKind.DIRECTORY
    path: Path
    files: list[Path] = Field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files)


class ScenarioFile(StepGuardBaseModel):
    kind: Literal[SourceKind.SCENARIO_FILE] = SourceKind.SCENARIO_FILE
    path: Path


class LegacyDocument(StepGuardBaseModel):
    kind: Literal[SourceKind.LEGACY_DOCUMENT] = SourceKind.LEGACY_DOCUMENT
    path: Path


class MissingSource(StepGuardBaseModel):
    kind: Literal[SourceKind.MISSING] = SourceKind.MISSING
    path: Path


CorpusSource = Annotated[
    ScenarioDirectory | ScenarioFile | LegacyDocument | MissingSource,
    Field(discriminator="kind"),
]


class AssertionCorpus(StepGuardBaseModel):
    """Ordered, canonicalized step lines extracted from a corpus source."""

    source: CorpusSource
    lines: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def joined(self) -> str:
        """Newline-joined text, no trailing newline. This is what gets hashed."""
        return "\n".join(self.lines)


class IntegrityRecord(StepGuardBaseModel):
    """
    A stored digest plus where it came from.

    Exactly one of source_directory / source_document is set.
    """

    digest: str
    generated_at: str
    source_kind: SourceKind
    source_directory: str | None = None
    source_document: str | None = None
    unit_count: int = 0

    def to_context_entry(self) -> dict[str, Any]:
        """Persisted shape under the reserved key in context.json."""
        entry: dict[str, Any] = {
            "assertion_hash": self.digest,
            "generated_at": self.generated_at,
        }
        if self.source_directory is not None:
            entry["features_dir"] = self.source_directory
            entry["file_count"] = self.unit_count
        else:
            entry["test_specs_file"] = self.source_document or ""
        return entry

    @classmethod
    def from_context_entry(cls, entry: dict[str, Any]) -> IntegrityRecord | None:
        digest = entry.get("assertion_hash")
        if not isinstance(digest, str) or not digest:
            return None
        features_dir = entry.get("features_dir")
        if isinstance(features_dir, str) and features_dir:
            return cls(
                digest=digest,
                generated_at=str(entry.get("generated_at", "")),
                source_kind=SourceKind.DIRECTORY,
                source_directory=features_dir,
                unit_count=int(entry.get("file_count") or 0),
            )
        document = str(entry.get("test_specs_file", ""))
        kind = (
            SourceKind.SCENARIO_FILE
            if document.endswith(".feature")
            else SourceKind.LEGACY_DOCUMENT
        )
        return cls(
            digest=digest,
            generated_at=str(entry.get("generated_at", "")),
            source_kind=kind,
            source_document=document,
            unit_count=1,
        )


class AnchorRecord(StepGuardBaseModel):
    """Contents of the git note that mirrors a digest on a commit."""

    digest: str
    generated_at: str
    origin_path: str
    origin_kind: SourceKind | None = None

    @property
    def covers_directory(self) -> bool:
        # Notes written before the kind line existed only carry the path
        if self.origin_kind is not None:
            return self.origin_kind is SourceKind.DIRECTORY
        return bool(self.origin_path) and Path(self.origin_path).is_dir()

    def to_note(self) -> str:
        note = (
            f"testify-hash: {self.digest}\n"
            f"generated-at: {self.generated_at}\n"
            f"test-specs-file: {self.origin_path}\n"
        )
        if self.origin_kind is not None:
            note += f"source-kind: {self.origin_kind}\n"
        return note

    @classmethod
    def from_note(cls, text: str) -> AnchorRecord | None:
        fields: dict[str, str] = {}
        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if sep:
                fields.setdefault(key.strip(), value.strip())
        digest = fields.get("testify-hash", "")
        if not digest:
            return None
        kind = fields.get("source-kind", "")
        return cls(
            digest=digest,
            generated_at=fields.get("generated-at", ""),
            origin_path=fields.get("test-specs-file", ""),
            origin_kind=SourceKind(kind) if kind in {k.value for k in SourceKind} else None,
        )


class IntegrityCheckResult(StepGuardBaseModel):
    """Raw per-channel results fed into the verdict aggregator."""

    path: str
    digest: CheckStatus = CheckStatus.SKIPPED
    anchor: CheckStatus = CheckStatus.SKIPPED
    drift: DriftStatus = DriftStatus.SKIPPED
    current_digest: str = ""
    stored_digest: str | None = None
    checked_at: datetime | None = None
