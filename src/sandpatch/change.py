"""Dependency change handed to pull request builders.

A DependencyChange pairs the dependencies an update touched with the
patch the workspace accumulated for them. Rendering it into a pull
request, and deciding whether it matches what a job asked for, is the
receiver's business.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from sandpatch.workspace import Workspace


class Dependency(BaseModel):
    """A dependency as it looks after the update."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str | None = None
    previous_version: str | None = None
    removed: bool = False


class DependencyChange(BaseModel):
    """Updated dependencies plus the diffs that update them."""

    model_config = ConfigDict(frozen=True)

    dependencies: tuple[Dependency, ...]
    diffs: tuple[str, ...] = Field(
        default=(),
        description="Per-attempt diffs of the successful attempts",
    )
    patch: str = Field(
        default="",
        description="Cumulative patch from the starting revision",
    )

    @classmethod
    def from_workspace(
        cls, workspace: Workspace, dependencies: list[Dependency]
    ) -> DependencyChange:
        return cls(
            dependencies=tuple(dependencies),
            diffs=tuple(workspace.changes),
            patch=workspace.to_patch(),
        )

    def humanized(self) -> str:
        """One-line summary, e.g. "rack ( from 2.0 to 2.1 )"."""
        return ", ".join(
            f"{dep.name} ( from {dep.previous_version} to {dep.version} )"
            for dep in self.dependencies
        )

    def to_set(self) -> frozenset[tuple[str, str | None, bool]]:
        """Identity of the change as (name, version, removed) keys.

        Two changes updating the same dependencies to the same
        versions compare equal here regardless of ordering.
        """
        return frozenset(
            (dep.name, dep.version, dep.removed)
            for dep in self.dependencies
        )
