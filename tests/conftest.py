"""
Shared fixtures for the StepGuard test suite.
"""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING

import pytest
import structlog

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _reset_logging():
    """The CLI configures structlog and the root handler; undo that between tests."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture(autouse=True)
def _isolated_git(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    # Stops git discovery from escaping into a repository that encloses tmp_path
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path.parent))


LOGIN_FEATURE = """\
Feature: Login

  Scenario: Valid credentials
    Given a registered user "alice"
    When they log in with the correct password
    Then access is granted

  Scenario Outline: Locked accounts
    Given a locked user "<name>"
    When they log in
    Then access is denied
    But an unlock email is sent

    Examples:
      | name |
      | bob  |
"""

CHECKOUT_FEATURE = """\
Feature: Checkout

  Scenario: Pay by card
    Given a cart with 2 items
    When the customer pays by card
    Then an order is created
"""


@pytest.fixture
def feature_dir(tmp_path: Path) -> Path:
    """specs/001-login/tests/features with two .feature files."""
    features = tmp_path / "specs" / "001-login" / "tests" / "features"
    features.mkdir(parents=True)
    (features / "login.feature").write_text(LOGIN_FEATURE, encoding="utf-8")
    (features / "checkout.feature").write_text(CHECKOUT_FEATURE, encoding="utf-8")
    return features


def run_git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """An initialised repository at tmp_path with a committer identity."""
    run_git(tmp_path, "init", "-q")
    run_git(tmp_path, "config", "user.email", "ci@example.com")
    run_git(tmp_path, "config", "user.name", "CI")
    run_git(tmp_path, "config", "commit.gpgsign", "false")
    return tmp_path


@pytest.fixture
def git():
    return run_git
