"""Pytest configuration and fixtures for sandpatch tests."""

import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

from sandpatch.core.log import ConsoleSink, setup_logger

GEMFILE = (
    'source "https://rubygems.org"\n'
    '\n'
    'gem "activesupport", ">= 6.0.0"\n'
)


def git(cwd: Path, *args: str) -> str:
    """Run git in cwd with a throwaway identity and return stdout."""
    return subprocess.run(
        [
            "git",
            "-c", "user.name=Test User",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    ).stdout


def head(repo: Path) -> str:
    return git(repo, "rev-parse", "HEAD").strip()


def without_index_lines(diff: str) -> str:
    """Drop "index abc..def" lines, whose blob hashes are incidental."""
    return "".join(
        line for line in diff.splitlines(keepends=True)
        if not line.startswith("index ")
    )


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only logging at debug level for the whole session."""
    setup_logger(
        log_root=Path(tempfile.gettempdir()) / "sandpatch-tests",
        run_name="test",
        level="debug",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture
def git_repo(tmp_path):
    """A repository with one commit holding a three-line Gemfile."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "--quiet")
    (repo / "Gemfile").write_text(GEMFILE)
    git(repo, "add", "Gemfile")
    git(repo, "commit", "--quiet", "-m", "Initial commit")
    return repo


@pytest.fixture
def no_cli_args(monkeypatch):
    """Stop State from parsing pytest's own command line."""
    monkeypatch.setattr(sys, "argv", ["sandpatch"])
