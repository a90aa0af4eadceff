"""
StepGuard -- Integrity Subsystem

Canonical corpus extraction, digest storage in context.json, and the
git-note secondary anchor.

Public interface:
  canonicalize          -- path -> AssertionCorpus
  compute_digest        -- AssertionCorpus -> SHA-256 hex or sentinel
  derive_artifact_root  -- corpus path -> owning feature directory
  IntegrityStore        -- store / verify / read_record for one artifact root
  GitHistory            -- anchor / verify_anchor / check_drift
"""

from stepguard.integrity.canonicalizer import canonicalize, extract_corpus, resolve_source
from stepguard.integrity.history import GitHistory
from stepguard.integrity.store import (
    NO_ASSERTIONS,
    IntegrityStore,
    compute_digest,
    derive_artifact_root,
)
from stepguard.integrity.types import (
    AnchorRecord,
    AssertionCorpus,
    IntegrityCheckResult,
    IntegrityRecord,
    SourceKind,
)

__all__ = [
    "NO_ASSERTIONS",
    "AnchorRecord",
    "AssertionCorpus",
    "GitHistory",
    "IntegrityCheckResult",
    "IntegrityRecord",
    "IntegrityStore",
    "SourceKind",
    "canonicalize",
    "compute_digest",
    "derive_artifact_root",
    "extract_corpus",
    "resolve_source",
]
