"""Tests for configuration template expansion."""

from pathlib import Path
from types import SimpleNamespace

import platformdirs

from sandpatch.core.config import expand_template


def test_platformdirs_template():
    """platformdirs functions are called with the application name."""
    expanded = expand_template("{platformdirs.user_log_dir}/x", None)

    assert expanded == (
        platformdirs.user_log_dir("sandpatch", appauthor=False) + "/x"
    )


def test_path_cwd_template():
    """Other callables are called without arguments."""
    assert expand_template("{Path.cwd}", None) == str(Path.cwd())


def test_root_attribute_template():
    """Dotted paths are looked up on the root object."""
    root = SimpleNamespace(
        config=SimpleNamespace(
            workspace=SimpleNamespace(repository_path=Path("/srv/app"))
        )
    )

    expanded = expand_template(
        "{config.workspace.repository_path}/logs", root
    )

    assert expanded == "/srv/app/logs"


def test_unknown_reference_is_left_alone():
    """Unresolvable references stay verbatim."""
    root = SimpleNamespace()

    assert expand_template("git commit -m {message}", root) == (
        "git commit -m {message}"
    )


def test_text_without_templates():
    assert expand_template("plain text", None) == "plain text"
