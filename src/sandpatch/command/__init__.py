"""CLI command modules for sandpatch."""

from sandpatch.command.apply import ApplyCommand
from sandpatch.command.reset import ResetCommand

__all__ = ["ApplyCommand", "ResetCommand"]
