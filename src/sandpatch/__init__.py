"""sandpatch - apply edits to a git checkout as isolated attempts."""

from sandpatch.change import Dependency, DependencyChange
from sandpatch.core.errors import (
    InvalidRepositoryError,
    SandpatchError,
    SubstrateError,
)
from sandpatch.workspace import AttemptError, ChangeAttempt, Workspace

__all__ = [
    "AttemptError",
    "ChangeAttempt",
    "Dependency",
    "DependencyChange",
    "InvalidRepositoryError",
    "SandpatchError",
    "SubstrateError",
    "Workspace",
]
