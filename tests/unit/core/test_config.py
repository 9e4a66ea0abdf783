"""Tests for State and Config loading."""

from pathlib import Path

import pytest

from sandpatch.core.config import State
from sandpatch.workspace import Workspace


@pytest.fixture
def state(no_cli_args, git_repo):
    return State(config={"workspace": {"repository_path": str(git_repo)}})


def test_defaults(state, git_repo):
    config = state.config

    assert config.workspace.repository_path == git_repo
    assert config.workspace.committer_name == "sandpatch"
    assert config.log_level == "info"
    assert config.commands == {"git": {}}
    assert "{" not in str(config.log_root)


def test_logger_is_set_up(state):
    assert state.config.logger is not None
    assert state.config.logger.console.level == "info"


def test_environment_overrides(no_cli_args, git_repo, monkeypatch):
    monkeypatch.setenv(
        "SANDPATCH_CONFIG__WORKSPACE__REPOSITORY_PATH", str(git_repo)
    )

    state = State()

    assert state.config.workspace.repository_path == git_repo


def test_template_substitution(no_cli_args, git_repo):
    state = State(config={
        "workspace": {"repository_path": str(git_repo)},
        "commands": {
            "custom": {"where": "{config.workspace.repository_path}"},
        },
    })

    assert state.config.commands["custom"]["where"] == str(git_repo)


def test_workspace_from_config(no_cli_args, git_repo):
    state = State(config={
        "workspace": {
            "repository_path": str(git_repo),
            "committer_name": "Config Bot",
        },
        "commands": {"git": {"clean": "git clean -fdx ."}},
    })

    workspace = Workspace.from_config(state.config)

    assert workspace.repository_path == Path(git_repo).resolve()
    assert workspace.backend.env["GIT_AUTHOR_NAME"] == "Config Bot"
    assert workspace.backend.commands["clean"] == "git clean -fdx ."
