"""Reset command - return the working tree to a revision."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from sandpatch.workspace import Workspace

if TYPE_CHECKING:
    from sandpatch.core.config import State


class ResetCommand(BaseModel):
    """Hard-reset the working tree and remove untracked files.

    Use this to discard the commits left behind by an earlier apply:
    pass the revision that run started from. Stashed failed attempts
    are kept.
    """

    revision: str = Field(
        default="HEAD",
        description="Revision to reset to",
    )

    async def run_workflow(self, state: State) -> int:
        workspace = Workspace.from_config(state.config)
        workspace.backend.reset_hard(self.revision)
        return 0
