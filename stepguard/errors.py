"""
StepGuard -- Error Hierarchy

Exceptions raised by the verification engine. Verification *outcomes*
(tamper, incompleteness, unverifiable) are never exceptions; they are
result values. Exceptions are reserved for environments the caller must
fix before a result can be produced.

Severity guide:
  NotAGitRepositoryError  -- anchor/drift requested without version history
  AnchorWriteError        -- git refused to attach the note
  ConfigError             -- configuration file missing or malformed
"""

from __future__ import annotations


class StepGuardError(RuntimeError):
    """Base for all StepGuard errors."""


class ConfigError(StepGuardError):
    """Configuration could not be loaded or validated."""


class HistoryError(StepGuardError):
    """Base for failures talking to the version-history system."""


class NotAGitRepositoryError(HistoryError):
    """
    The path is not inside a git working tree.

    Recovery: run outside anchor/drift mode, or initialise a repository.
    The integrity checker maps this to SKIPPED rather than failing.
    """


class AnchorWriteError(HistoryError):
    """
    `git notes add` failed (e.g. no commits yet on HEAD).

    Recovery: commit at least once, then re-anchor.
    """
