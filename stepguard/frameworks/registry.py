"""
StepGuard -- Framework Profile Registry

Maps a target description to a FrameworkProfile.

Resolution order:
  1. Explicit declaration (tech-stack text such as a plan document):
     framework names first, then language hints.
  2. File-extension sniffing under the features directory's parent.
  3. Nothing matched -> None. The registry never guesses.

Profiles are static data. The registry is built once at import time
and then only read.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from stepguard.frameworks.types import FrameworkProfile, Language

logger = structlog.get_logger(system="stepguard.frameworks.registry")

_PYTHON_MANIFESTS = ("requirements*.txt", "pyproject.toml", "setup.py", "setup.cfg", "Pipfile")

PROFILES: tuple[FrameworkProfile, ...] = (
    FrameworkProfile(
        name="pytest-bdd",
        language=Language.PYTHON,
        dry_run_invocation=("pytest", "--collect-only", "tests/"),
        output_grammar="pytest-bdd",
        dependency_files=_PYTHON_MANIFESTS,
        dependency_marker="pytest-bdd",
    ),
    FrameworkProfile(
        name="behave",
        language=Language.PYTHON,
        dry_run_invocation=("behave", "--dry-run", "--strict"),
        output_grammar="behave",
        dependency_files=_PYTHON_MANIFESTS,
        dependency_marker="behave",
    ),
    FrameworkProfile(
        name="@cucumber/cucumber",
        language=Language.JAVASCRIPT,
        dry_run_invocation=("npx", "cucumber-js", "--dry-run", "--strict"),
        output_grammar="@cucumber/cucumber",
        dependency_files=("package.json",),
        dependency_marker="@cucumber/cucumber",
    ),
    FrameworkProfile(
        name="godog",
        language=Language.GO,
        dry_run_invocation=("godog", "--strict", "--no-colors", "--dry-run"),
        output_grammar="godog",
        dependency_files=("go.mod",),
        dependency_marker="godog",
    ),
    FrameworkProfile(
        name="cucumber-jvm-maven",
        language=Language.JAVA,
        dry_run_invocation=("mvn", "test", "-Dcucumber.options=--dry-run --strict"),
        output_grammar="cucumber-jvm",
        dependency_files=("pom.xml",),
        dependency_marker="cucumber",
    ),
    FrameworkProfile(
        name="cucumber-jvm-gradle",
        language=Language.JAVA,
        dry_run_invocation=("gradle", "test", "-Dcucumber.options=--dry-run --strict"),
        output_grammar="cucumber-jvm",
        dependency_files=("build.gradle", "build.gradle.kts"),
        dependency_marker="cucumber",
    ),
    FrameworkProfile(
        name="cucumber-rs",
        language=Language.RUST,
        dry_run_invocation=("cargo", "test"),
        output_grammar="cucumber-rs",
        dependency_files=("Cargo.toml",),
        dependency_marker="cucumber",
    ),
    FrameworkProfile(
        name="reqnroll",
        language=Language.CSHARP,
        dry_run_invocation=("dotnet", "test", "-e", "REQNROLL_DRY_RUN=true"),
        output_grammar="reqnroll",
        dependency_files=("*.csproj",),
        dependency_marker="Reqnroll",
    ),
)

# Framework names as they appear in tech-stack text, most specific first.
# Each pattern is matched case-insensitively against the whole declaration.
_NAME_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("pytest-bdd", (r"pytest-bdd",)),
    ("behave", (r"\bbehave\b",)),
    ("@cucumber/cucumber", (r"@cucumber/cucumber|cucumber-js|cucumber\.js",)),
    ("godog", (r"\bgodog\b",)),
    ("cucumber-jvm-maven", (r"cucumber", r"maven|pom\.xml")),
    ("cucumber-jvm-gradle", (r"cucumber", r"gradle")),
    ("cucumber-rs", (r"cucumber-rs|cucumber.*rust|rust.*cucumber",)),
    ("reqnroll", (r"\breqnroll\b",)),
)

# Language hints, used only when no framework name matched
_LANGUAGE_RULES: tuple[tuple[str, str], ...] = (
    (r"\bpython\b|\bpytest\b", "pytest-bdd"),
    (r"\bjavascript\b|\btypescript\b|node\.js|\bjest\b|\bvitest\b", "@cucumber/cucumber"),
    (r"\bgolang\b|\bgo test\b|\bgo 1\.", "godog"),
    (r"\bjava\b.*\b(?:jdk|jre|spring|maven|gradle)\b|\b(?:jdk|jre|spring|maven|gradle)\b.*\bjava\b", "cucumber-jvm"),
    (r"\brust\b|\bcargo\b", "cucumber-rs"),
    (r"c#|\bcsharp\b|\.net\b|\bdotnet\b", "reqnroll"),
)

# Extension sniffing order when nothing is declared
_EXTENSION_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    ((".py",), "pytest-bdd"),
    ((".ts", ".js"), "@cucumber/cucumber"),
    ((".go",), "godog"),
    ((".rs",), "cucumber-rs"),
    ((".cs",), "reqnroll"),
    ((".java",), "cucumber-jvm-maven"),
)
_SNIFF_DEPTH = 3


class FrameworkRegistry:
    """Read-only lookup of FrameworkProfiles by name."""

    def __init__(self) -> None:
        self._profiles: dict[str, FrameworkProfile] = {}
        self._logger = logger

    def register(self, profile: FrameworkProfile) -> None:
        """Raises ValueError if a profile with the same name is already registered."""
        if profile.name in self._profiles:
            raise ValueError(f"Framework profile {profile.name!r} already registered")
        self._profiles[profile.name] = profile
        self._logger.debug("framework_registered", framework=profile.name)

    def get(self, name: str) -> FrameworkProfile | None:
        return self._profiles.get(name.strip())

    def get_strict(self, name: str) -> FrameworkProfile:
        profile = self.get(name)
        if profile is None:
            raise KeyError(
                f"No framework profile named {name!r}. "
                f"Available: {self.list_names()}"
            )
        return profile

    def list_names(self) -> list[str]:
        return sorted(self._profiles.keys())

    def for_language(self, language: Language) -> list[FrameworkProfile]:
        return [p for p in self._profiles.values() if p.language == language]

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        return len(self._profiles)

    def __repr__(self) -> str:
        return f"<FrameworkRegistry frameworks={self.list_names()}>"


def _build_default_registry() -> FrameworkRegistry:
    registry = FrameworkRegistry()
    for profile in PROFILES:
        registry.register(profile)
    return registry


DEFAULT_REGISTRY = _build_default_registry()


# ─── Resolution ──────────────────────────────────────────────────


def profile_from_declaration(
    declaration: str,
    registry: FrameworkRegistry = DEFAULT_REGISTRY,
) -> FrameworkProfile | None:
    """Match tech-stack text against framework names, then language hints."""
    text = declaration.lower()
    for name, patterns in _NAME_RULES:
        if all(re.search(p, text) for p in patterns):
            return registry.get(name)

    for pattern, name in _LANGUAGE_RULES:
        if not re.search(pattern, text):
            continue
        if name == "cucumber-jvm":
            name = "cucumber-jvm-gradle" if "gradle" in text else "cucumber-jvm-maven"
        return registry.get(name)
    return None


def _files_within(root: Path, depth: int) -> list[Path]:
    found: list[Path] = []
    frontier = [root]
    for _ in range(depth):
        next_frontier: list[Path] = []
        for directory in frontier:
            try:
                entries = sorted(directory.iterdir())
            except OSError:
                continue
            for entry in entries:
                if entry.is_dir():
                    next_frontier.append(entry)
                elif entry.is_file():
                    found.append(entry)
        frontier = next_frontier
    return found


def profile_from_extensions(
    search_root: Path,
    registry: FrameworkRegistry = DEFAULT_REGISTRY,
) -> FrameworkProfile | None:
    """First extension group found up to three levels below `search_root`."""
    if not search_root.is_dir():
        return None
    suffixes = {p.suffix for p in _files_within(search_root, _SNIFF_DEPTH)}
    for extensions, name in _EXTENSION_RULES:
        if suffixes.intersection(extensions):
            return registry.get(name)
    return None


def resolve_profile(
    declaration: str | None,
    features_dir: str | Path,
    registry: FrameworkRegistry = DEFAULT_REGISTRY,
) -> FrameworkProfile | None:
    """Explicit declaration wins, then extension sniffing, else None."""
    if declaration:
        profile = profile_from_declaration(declaration, registry)
        if profile is not None:
            logger.debug("framework_resolved", framework=profile.name, via="declaration")
            return profile

    profile = profile_from_extensions(Path(features_dir).parent, registry)
    if profile is not None:
        logger.debug("framework_resolved", framework=profile.name, via="extension")
    else:
        logger.info("framework_unresolved", features_dir=str(features_dir))
    return profile


def find_dependency_declaration(
    profile: FrameworkProfile,
    project_root: str | Path,
) -> Path | None:
    """The manifest under `project_root` that declares the framework, if any."""
    root = Path(project_root)
    marker = profile.dependency_marker.lower()
    if not marker or not root.is_dir():
        return None
    for pattern in profile.dependency_files:
        for manifest in sorted(root.glob(pattern)):
            if not manifest.is_file():
                continue
            try:
                content = manifest.read_text(encoding="utf-8", errors="replace").lower()
            except OSError:
                continue
            if marker in content:
                return manifest
    return None
