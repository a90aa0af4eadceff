"""
StepGuard -- Framework Types

Static description of the BDD frameworks StepGuard knows how to drive.
"""

from __future__ import annotations

import enum

from pydantic import Field

from stepguard.primitives.common import StepGuardBaseModel


class Language(enum.StrEnum):
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    GO = "go"
    JAVA = "java"
    RUST = "rust"
    CSHARP = "csharp"


# Accepted spellings for a language token on the command line
LANGUAGE_ALIASES: dict[str, Language] = {
    "python": Language.PYTHON,
    "py": Language.PYTHON,
    "javascript": Language.JAVASCRIPT,
    "js": Language.JAVASCRIPT,
    "node": Language.JAVASCRIPT,
    "typescript": Language.TYPESCRIPT,
    "ts": Language.TYPESCRIPT,
    "go": Language.GO,
    "golang": Language.GO,
    "java": Language.JAVA,
    "rust": Language.RUST,
    "rs": Language.RUST,
    "csharp": Language.CSHARP,
    "c#": Language.CSHARP,
    "cs": Language.CSHARP,
    "dotnet": Language.CSHARP,
}


def parse_language(token: str) -> Language | None:
    return LANGUAGE_ALIASES.get(token.strip().lower())


class FrameworkProfile(StepGuardBaseModel):
    """
    One BDD framework: how to dry-run it and how to read its output.

    `output_grammar` names an entry in the grammar table; it is usually the
    profile name, but Maven and Gradle share the Cucumber-JVM grammar.
    """

    name: str
    language: Language
    dry_run_invocation: tuple[str, ...]
    output_grammar: str
    dependency_files: tuple[str, ...] = ()
    dependency_marker: str = ""

    @property
    def executable(self) -> str:
        return self.dry_run_invocation[0]


class UndefinedStep(StepGuardBaseModel):
    step: str
    file: str = "unknown"
    line: int = 0


class DryRunCounts(StepGuardBaseModel):
    """What a grammar recovered from one dry-run transcript."""

    undefined: int = 0
    pending: int = 0
    details: list[UndefinedStep] = Field(default_factory=list)
