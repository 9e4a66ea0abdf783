"""Exceptions raised by sandpatch itself.

Faults raised by a caller's mutation are never wrapped in these; they
reach the caller exactly as raised.
"""


class SandpatchError(Exception):
    """Base class for sandpatch errors."""


class InvalidRepositoryError(SandpatchError):
    """The path given to a workspace is not a committed git work tree."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path} is not a usable repository: {reason}")


class SubstrateError(SandpatchError):
    """A version control command failed.

    Leaves the workspace in an undefined state; callers should stop
    using the workspace that raised it.
    """

    def __init__(
        self,
        command: str,
        exited: int,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = command
        self.exited = exited
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Command failed with exit code {exited}\n"
            f"Command: {command}\n"
            f"stderr: {stderr}\n"
            f"stdout: {stdout}"
        )
