"""Apply command - run shell commands as change attempts."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from invoke.exceptions import UnexpectedExit
from pydantic import BaseModel, ConfigDict, Field

from sandpatch.core.log import logger
from sandpatch.core.runner import Runner
from sandpatch.workspace import Workspace

if TYPE_CHECKING:
    from sandpatch.core.config import State


class ApplyCommand(BaseModel):
    """Run each command as one change attempt and print the patch.

    Commands run in order inside the configured repository. A command
    that exits non-zero is a failed attempt: its edits are stashed and
    later commands start from the last successful state. The
    cumulative patch of the successful attempts is printed, or written
    to --patch-file.

    Exit status is 0 when every attempt succeeded and 1 otherwise.
    """

    model_config = ConfigDict(populate_by_name=True)

    commands: list[str] = Field(
        description="Shell commands to run, one attempt each",
    )
    memos: list[str] = Field(
        default_factory=list,
        description=(
            "Memo for each command, by position; the command itself is "
            "used where none is given"
        ),
    )
    patch_file: Path | None = Field(
        default=None,
        alias="patch-file",
        description="Write the patch here instead of stdout",
    )
    stop_on_failure: bool = Field(
        default=False,
        alias="stop-on-failure",
        description="Skip the remaining commands after a failure",
    )

    def memo_for(self, index: int) -> str:
        if index < len(self.memos):
            return self.memos[index]
        return self.commands[index]

    async def run_workflow(self, state: State) -> int:
        """Run apply workflow.

        Args:
            state: State instance

        Returns:
            Exit code (0=every attempt succeeded)
        """
        progress = state.runtime.apply
        progress.status = "running"

        workspace = Workspace.from_config(state.config)
        runner = Runner()

        for index, command in enumerate(self.commands):
            progress.attempted += 1
            try:
                workspace.attempt_change(
                    lambda command=command: runner.execute(
                        command, cwd=workspace.repository_path
                    ),
                    memo=self.memo_for(index),
                )
            except UnexpectedExit as e:
                progress.failed += 1
                logger.warn(
                    "Command exited with {exited}",
                    exited=e.result.exited,
                    command=command,
                    stderr=e.result.stderr,
                )
                if self.stop_on_failure:
                    break

        patch = workspace.to_patch()
        if self.patch_file:
            self.patch_file.write_text(
                patch, encoding="utf-8", errors="surrogateescape"
            )
            logger.info("Patch written", path=str(self.patch_file))
        else:
            sys.stdout.flush()
            sys.stdout.buffer.write(
                patch.encode("utf-8", "surrogateescape")
            )
            sys.stdout.buffer.flush()

        progress.status = "failed" if progress.failed else "complete"
        logger.info(
            "Applied {succeeded} of {attempted} change attempts",
            succeeded=len(workspace.changes),
            attempted=progress.attempted,
        )
        return 1 if progress.failed else 0
