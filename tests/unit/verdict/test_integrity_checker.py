"""
Tests for IntegrityChecker: running every channel for a path and
aggregating the result.
"""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

import pytest

from stepguard.integrity.history import GitHistory
from stepguard.integrity.store import IntegrityStore, derive_artifact_root
from stepguard.primitives.common import (
    CheckStatus,
    DriftStatus,
    EnforcementPolicy,
    GateStatus,
)
from stepguard.verdict.service import IntegrityChecker

if TYPE_CHECKING:
    from pathlib import Path

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class TestDirectoryInput:
    def test_unverified_mandatory_blocks(self, feature_dir: Path):
        verdict = IntegrityChecker().check(feature_dir, EnforcementPolicy.MANDATORY)
        assert verdict.overall_status == GateStatus.BLOCKED
        assert "mandatory but unverifiable" in verdict.reason
        assert verdict.checks.anchor == CheckStatus.SKIPPED
        assert verdict.checks.drift == DriftStatus.SKIPPED

    def test_unverified_optional_warns(self, feature_dir: Path):
        verdict = IntegrityChecker().check(feature_dir, EnforcementPolicy.OPTIONAL)
        assert verdict.overall_status == GateStatus.WARN

    def test_stored_and_unchanged_passes(self, feature_dir: Path):
        IntegrityStore(derive_artifact_root(feature_dir)).store(feature_dir)
        verdict = IntegrityChecker().check(feature_dir, EnforcementPolicy.MANDATORY)
        assert verdict.overall_status == GateStatus.PASS

    def test_tampered_blocks(self, feature_dir: Path):
        IntegrityStore(derive_artifact_root(feature_dir)).store(feature_dir)
        login = feature_dir / "login.feature"
        login.write_text(login.read_text().replace("access is granted", "access is granted!"))
        verdict = IntegrityChecker().check(feature_dir, EnforcementPolicy.OPTIONAL)
        assert verdict.overall_status == GateStatus.BLOCKED
        assert verdict.reason == "Assertions were modified since verification"

    def test_collect_reports_digests(self, feature_dir: Path):
        record = IntegrityStore(derive_artifact_root(feature_dir)).store(feature_dir)
        result = IntegrityChecker().collect(feature_dir)
        assert result.digest == CheckStatus.VALID
        assert result.stored_digest == record.digest
        assert result.current_digest == record.digest

    def test_explicit_artifact_root(self, feature_dir: Path, tmp_path: Path):
        elsewhere = tmp_path / "records"
        IntegrityStore(elsewhere).store(feature_dir)
        checker = IntegrityChecker(artifact_root=elsewhere)
        assert checker.collect(feature_dir).digest == CheckStatus.VALID


class TestFileInputOutsideRepository:
    def test_git_channels_skipped(self, feature_dir: Path):
        result = IntegrityChecker().collect(feature_dir / "login.feature")
        assert result.anchor == CheckStatus.SKIPPED
        assert result.drift == DriftStatus.SKIPPED


@requires_git
class TestFileInputInRepository:
    def test_anchor_and_drift(self, git_repo: Path, feature_dir: Path, git):
        git(git_repo, "add", ".")
        git(git_repo, "commit", "-q", "-m", "features")
        feature = feature_dir / "login.feature"
        GitHistory(git_repo).anchor(feature)

        result = IntegrityChecker().collect(feature)
        assert result.anchor == CheckStatus.VALID
        assert result.drift == DriftStatus.CLEAN
        assert result.digest == CheckStatus.MISSING

        verdict = IntegrityChecker().check(feature, EnforcementPolicy.MANDATORY)
        assert verdict.overall_status == GateStatus.PASS

    def test_uncommitted_step_edit_blocks(self, git_repo: Path, feature_dir: Path, git):
        git(git_repo, "add", ".")
        git(git_repo, "commit", "-q", "-m", "features")
        feature = feature_dir / "login.feature"
        IntegrityStore(derive_artifact_root(feature)).store(feature)
        feature.write_text(feature.read_text().replace("access is denied", "access is refused"))

        verdict = IntegrityChecker().check(feature, EnforcementPolicy.OPTIONAL)
        assert verdict.overall_status == GateStatus.BLOCKED
        assert verdict.checks.drift == DriftStatus.MODIFIED

    def test_directory_record_and_anchor_checked_per_file(self, git_repo: Path, feature_dir: Path, git):
        git(git_repo, "add", ".")
        git(git_repo, "commit", "-q", "-m", "features")
        record = IntegrityStore(derive_artifact_root(feature_dir)).store(feature_dir)
        GitHistory(git_repo).anchor(feature_dir)
        feature = feature_dir / "login.feature"

        result = IntegrityChecker().collect(feature)
        assert result.digest == CheckStatus.VALID
        assert result.anchor == CheckStatus.VALID
        assert result.drift == DriftStatus.CLEAN
        assert result.current_digest == record.digest

        verdict = IntegrityChecker().check(feature, EnforcementPolicy.MANDATORY)
        assert verdict.overall_status == GateStatus.PASS
        assert verdict.issues == []
