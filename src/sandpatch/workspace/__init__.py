"""Transactional change tracking over a git working tree."""

from sandpatch.workspace.attempt import AttemptError, ChangeAttempt
from sandpatch.workspace.workspace import Workspace

__all__ = ["AttemptError", "ChangeAttempt", "Workspace"]
