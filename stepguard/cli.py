"""
StepGuard -- Command Line Interface

  stepguard [--json] [--config PATH] <command> ...

Exit codes:
  0  PASS, WARN, DEGRADED, or an informational result
  1  BLOCKED, or a usage error
  2  environment error (no git history where one is required, or an
     input that exists but cannot be read)

With --json exactly one JSON document is written to stdout. Logs always
go to stderr.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, NoReturn

import orjson
import structlog
from dotenv import load_dotenv

from stepguard import __version__
from stepguard.config import StepGuardConfig, load_config
from stepguard.coverage import CoverageResult, CoverageVerifier
from stepguard.errors import ConfigError, HistoryError
from stepguard.execution import ExecutionReport, verify_execution
from stepguard.frameworks import (
    DEFAULT_REGISTRY,
    FrameworkProfile,
    find_dependency_declaration,
    resolve_profile,
)
from stepguard.integrity import GitHistory, IntegrityStore, canonicalize, derive_artifact_root
from stepguard.primitives.common import EnforcementPolicy
from stepguard.quality import QualityAnalyzer, QualityReport
from stepguard.telemetry.logging import setup_logging
from stepguard.verdict import IntegrityChecker, Verdict, apply_gates

logger = structlog.get_logger(system="stepguard.cli")

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_ENVIRONMENT = 2


class _ArgumentParser(argparse.ArgumentParser):
    """argparse exits 2 on bad usage; 2 is reserved for environment errors here."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


# ─── Output ───────────────────────────────────────────────────────


def _emit(args: argparse.Namespace, payload: dict[str, Any], text: str) -> None:
    if args.json:
        sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))
        sys.stdout.write("\n")
    else:
        print(text)


def _format_verdict(verdict: Verdict) -> str:
    checks = verdict.checks
    lines = [f"{verdict.overall_status}" + (f": {verdict.reason}" if verdict.reason else "")]
    channels = f"  integrity={checks.integrity} anchor={checks.anchor} drift={checks.drift}"
    if checks.coverage is not None:
        channels += f" coverage={checks.coverage}"
    if checks.quality is not None:
        channels += f" quality={checks.quality}"
    lines.append(channels)
    lines.extend(f"  - {issue}" for issue in verdict.issues)
    return "\n".join(lines)


def _format_coverage(result: CoverageResult, manifest: Path | None) -> str:
    lines = [f"{result.status}: {result.message}"]
    if result.framework:
        lines.append(f"  framework: {result.framework}")
        if manifest is not None:
            lines.append(f"  declared in: {manifest}")
    if result.total_steps:
        lines.append(
            f"  steps: {result.total_steps} total, {result.matched} matched, "
            f"{result.undefined} undefined, {result.pending} pending"
        )
    lines.extend(f"  - {d.step} ({d.file}:{d.line})" for d in result.details)
    return "\n".join(lines)


def _format_quality(report: QualityReport) -> str:
    lines = [
        f"{report.status}: {report.quality_fail} of {report.total_steps} steps failed "
        f"({report.language}, {report.parser} parser)"
    ]
    if report.parser_note:
        lines.append(f"  {report.parser_note}")
    lines.extend(
        f"  - [{f.severity}] {f.defect_kind} {f.file}:{f.line} {f.step_label}: {f.message}"
        for f in report.details
    )
    return "\n".join(lines)


def _format_execution(report: ExecutionReport) -> str:
    actual = report.actual
    runner = actual.runner or "unknown runner"
    return (
        f"{report.status}: {report.message}\n"
        f"  {runner}: {actual.passed} passed, {actual.failed} failed, {actual.total} total; "
        f"{report.expected} scenarios expected"
    )


# ─── Commands ─────────────────────────────────────────────────────


def _cmd_extract(args: argparse.Namespace, config: StepGuardConfig) -> int:
    corpus = canonicalize(args.path)
    payload = {
        "path": str(args.path),
        "source_kind": str(corpus.source.kind),
        "lines": list(corpus.lines),
    }
    _emit(args, payload, corpus.joined())
    return EXIT_OK


def _cmd_hash(args: argparse.Namespace, config: StepGuardConfig) -> int:
    store = IntegrityStore(derive_artifact_root(args.path), config.integrity)
    digest = store.digest_for(args.path)
    _emit(args, {"path": str(args.path), "digest": digest}, digest)
    return EXIT_OK


def _cmd_store(args: argparse.Namespace, config: StepGuardConfig) -> int:
    store = IntegrityStore(derive_artifact_root(args.path), config.integrity)
    record = store.store(args.path)
    payload = {"record_file": str(store.record_path), **record.model_dump(mode="json")}
    _emit(args, payload, record.digest)
    return EXIT_OK


def _cmd_verify(args: argparse.Namespace, config: StepGuardConfig) -> int:
    store = IntegrityStore(derive_artifact_root(args.path), config.integrity)
    status = store.verify(args.path)
    _emit(args, {"path": str(args.path), "status": str(status)}, str(status))
    return EXIT_OK


def _history_for(path: Path, config: StepGuardConfig) -> GitHistory:
    workdir = path if path.is_dir() else path.parent
    return GitHistory(workdir if workdir.is_dir() else None, config.integrity)


def _cmd_anchor(args: argparse.Namespace, config: StepGuardConfig) -> int:
    digest = _history_for(args.path, config).anchor(args.path)
    _emit(args, {"path": str(args.path), "digest": digest, "ref": config.integrity.notes_ref}, digest)
    return EXIT_OK


def _cmd_verify_anchor(args: argparse.Namespace, config: StepGuardConfig) -> int:
    status = _history_for(args.path, config).verify_anchor(args.path)
    _emit(args, {"path": str(args.path), "status": str(status)}, str(status))
    return EXIT_OK


def _cmd_drift(args: argparse.Namespace, config: StepGuardConfig) -> int:
    status = _history_for(args.path, config).check_drift(args.path)
    _emit(args, {"path": str(args.path), "status": str(status)}, str(status))
    return EXIT_OK


def _resolve_framework(
    features_dir: Path,
    framework: str | None,
    declaration: Path | None,
) -> FrameworkProfile | None:
    if framework:
        return DEFAULT_REGISTRY.get_strict(framework)
    text = None
    if declaration is not None:
        text = declaration.read_text(encoding="utf-8", errors="replace")
    return resolve_profile(text, features_dir)


def _run_coverage(
    features_dir: Path,
    config: StepGuardConfig,
    framework: str | None = None,
    declaration: Path | None = None,
    project_root: Path | None = None,
) -> tuple[CoverageResult, Path | None]:
    profile = _resolve_framework(features_dir, framework, declaration)
    verifier = CoverageVerifier(config.coverage, project_root=project_root)
    result = verifier.verify(features_dir, profile)
    manifest = None
    if profile is not None:
        manifest = find_dependency_declaration(profile, project_root or Path.cwd())
    return result, manifest


def _cmd_coverage(args: argparse.Namespace, config: StepGuardConfig) -> int:
    result, manifest = _run_coverage(
        args.features_dir,
        config,
        framework=args.framework,
        declaration=args.declaration,
        project_root=args.project_root,
    )
    payload = {
        **result.model_dump(mode="json"),
        "dependency_manifest": str(manifest) if manifest is not None else None,
    }
    _emit(args, payload, _format_coverage(result, manifest))
    return result.status.exit_code


def _cmd_quality(args: argparse.Namespace, config: StepGuardConfig) -> int:
    analyzer = QualityAnalyzer(config.quality)
    report = analyzer.analyze(args.steps_dir, args.language, heuristic_only=args.heuristic)
    _emit(args, report.model_dump(mode="json", by_alias=True), _format_quality(report))
    return report.status.exit_code


def _cmd_integrity(args: argparse.Namespace, config: StepGuardConfig) -> int:
    checker = IntegrityChecker(config.integrity)
    verdict = checker.check(args.path, EnforcementPolicy(args.policy))

    coverage = None
    if args.coverage_dir is not None:
        coverage, _ = _run_coverage(args.coverage_dir, config, framework=args.framework)
    quality = None
    if args.quality_dir is not None:
        if not args.language:
            raise ValueError("--quality-dir requires --language")
        quality = QualityAnalyzer(config.quality).analyze(args.quality_dir, args.language)
    if coverage is not None or quality is not None:
        verdict = apply_gates(verdict, coverage=coverage, quality=quality)

    _emit(args, verdict.model_dump(mode="json", by_alias=True), _format_verdict(verdict))
    return verdict.exit_code


def _cmd_execution(args: argparse.Namespace, config: StepGuardConfig) -> int:
    if args.output == "-":
        output = sys.stdin.read()
    else:
        output = Path(args.output).read_text(encoding="utf-8", errors="replace")
    report = verify_execution(args.features_path, output)
    _emit(args, report.model_dump(mode="json"), _format_execution(report))
    return report.status.exit_code


# ─── Parser ───────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="stepguard",
        description="Assertion-integrity and step-quality verification for BDD projects",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--json", action="store_true", help="emit one JSON document on stdout")
    parser.add_argument("--config", type=Path, default=None, help="YAML config overlay")
    commands = parser.add_subparsers(dest="command", required=True, parser_class=_ArgumentParser)

    for name, handler, help_text in (
        ("extract", _cmd_extract, "print the canonical assertion corpus"),
        ("hash", _cmd_hash, "print the corpus digest"),
        ("store", _cmd_store, "compute and store the digest in context.json"),
        ("verify", _cmd_verify, "compare against the stored digest"),
        ("anchor", _cmd_anchor, "write the digest as a git note on HEAD"),
        ("verify-anchor", _cmd_verify_anchor, "compare against the git note on HEAD"),
        ("drift", _cmd_drift, "check the working tree for step-line changes"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("path", type=Path)
        sub.set_defaults(handler=handler)

    integrity = commands.add_parser("integrity", help="full tamper-evidence verdict")
    integrity.add_argument("path", type=Path)
    integrity.add_argument(
        "--policy",
        choices=[str(p) for p in EnforcementPolicy],
        default=str(EnforcementPolicy.OPTIONAL),
    )
    integrity.add_argument("--coverage-dir", type=Path, default=None, help="also gate on step coverage")
    integrity.add_argument("--framework", default=None)
    integrity.add_argument("--quality-dir", type=Path, default=None, help="also gate on step quality")
    integrity.add_argument("--language", default=None)
    integrity.set_defaults(handler=_cmd_integrity)

    coverage = commands.add_parser("coverage", help="find undefined and pending steps")
    coverage.add_argument("features_dir", type=Path)
    coverage.add_argument("--declaration", type=Path, default=None, help="tech-stack document")
    coverage.add_argument(
        "--framework", default=None, choices=DEFAULT_REGISTRY.list_names(),
    )
    coverage.add_argument("--project-root", type=Path, default=None)
    coverage.set_defaults(handler=_cmd_coverage)

    quality = commands.add_parser("quality", help="classify step binding bodies")
    quality.add_argument("steps_dir", type=Path)
    quality.add_argument("language")
    quality.add_argument("--heuristic", action="store_true", help="skip the structural parser")
    quality.set_defaults(handler=_cmd_quality)

    execution = commands.add_parser("execution", help="check test output against the scenarios")
    execution.add_argument("features_path", type=Path)
    execution.add_argument("--output", required=True, help="captured test output, or - for stdin")
    execution.set_defaults(handler=_cmd_execution)

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"stepguard: {exc}", file=sys.stderr)
        return EXIT_USAGE
    setup_logging(config.logging, run_label=args.command)

    try:
        return args.handler(args, config)
    except HistoryError as exc:
        logger.error("history_unavailable", command=args.command, error=str(exc))
        print(f"stepguard: {exc}", file=sys.stderr)
        return EXIT_ENVIRONMENT
    except (FileNotFoundError, KeyError, ValueError) as exc:
        print(f"stepguard: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except OSError as exc:
        logger.error("io_failed", command=args.command, error=str(exc))
        print(f"stepguard: {exc}", file=sys.stderr)
        return EXIT_ENVIRONMENT


if __name__ == "__main__":
    sys.exit(main())
