"""
StepGuard -- Framework Profiles

Static knowledge about the eight supported BDD tools: how to dry-run
each one and how to read what it prints.
"""

from stepguard.frameworks.grammars import GRAMMARS, OutputGrammar, get_grammar
from stepguard.frameworks.registry import (
    DEFAULT_REGISTRY,
    PROFILES,
    FrameworkRegistry,
    find_dependency_declaration,
    profile_from_declaration,
    profile_from_extensions,
    resolve_profile,
)
from stepguard.frameworks.types import (
    DryRunCounts,
    FrameworkProfile,
    Language,
    UndefinedStep,
    parse_language,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "GRAMMARS",
    "PROFILES",
    "DryRunCounts",
    "FrameworkProfile",
    "FrameworkRegistry",
    "Language",
    "OutputGrammar",
    "UndefinedStep",
    "find_dependency_declaration",
    "get_grammar",
    "parse_language",
    "profile_from_declaration",
    "profile_from_extensions",
    "resolve_profile",
]
