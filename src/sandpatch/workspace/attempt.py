"""Change attempt records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class AttemptError(BaseModel):
    """The fault a failed mutation raised, reduced to kind and message."""

    model_config = ConfigDict(frozen=True)

    kind: str
    message: str

    @classmethod
    def from_exception(cls, error: BaseException) -> AttemptError:
        return cls(kind=type(error).__name__, message=str(error))

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ChangeAttempt(BaseModel):
    """Outcome of one mutation run inside a workspace.

    id is the commit sha for a successful attempt and the stash commit
    sha for a failed one. An attempt that changed nothing carries the
    revision that was current when it finished and an empty diff.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    diff: str
    memo: str | None = None
    error: AttemptError | None = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def success(self) -> bool:
        return self.error is None
