"""Workspace that commits successful mutations and stashes failed ones."""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sandpatch.core.errors import InvalidRepositoryError, SubstrateError
from sandpatch.core.log import logger
from sandpatch.git.backend import GitBackend, VersioningBackend
from sandpatch.workspace.attempt import AttemptError, ChangeAttempt

if TYPE_CHECKING:
    from sandpatch.core.config import Config


class Workspace:
    """Runs mutations against a working tree, one attempt at a time.

    Each attempt either ends up as a commit on top of the previous
    successful one, or, if the mutation raised, as a stash entry that
    is removed from the tree. Between attempts the tree therefore only
    holds successful changes, and to_patch() is the diff from the
    revision the workspace started at to HEAD.

    A workspace is single-writer: drive it from one thread, and do not
    bind two workspaces to the same checkout.
    """

    def __init__(
        self,
        repository_path: Path | str,
        backend: VersioningBackend | None = None,
        **backend_options: Any,
    ):
        """Bind to an existing, committed working tree.

        Args:
            repository_path: Root of the working tree
            backend: Version control backend; a GitBackend on
                repository_path when omitted
            **backend_options: Passed to GitBackend when backend is
                omitted

        Raises:
            InvalidRepositoryError: If the path is missing, is not a
                work tree or the top of one, or has no commit yet
        """
        self._repository_path = Path(repository_path).resolve()
        if not self._repository_path.is_dir():
            raise InvalidRepositoryError(
                self._repository_path, "no such directory"
            )

        self.backend = backend or GitBackend(
            self._repository_path, **backend_options
        )
        if not self.backend.is_work_tree():
            raise InvalidRepositoryError(
                self._repository_path, "not a git work tree"
            )
        # Staging and cleaning act on the bound path only, while status
        # and stash cover the whole tree
        if self.backend.root() != self._repository_path:
            raise InvalidRepositoryError(
                self._repository_path, "not the top of its work tree"
            )
        try:
            self._initial_revision = self.backend.current_revision()
        except SubstrateError as e:
            raise InvalidRepositoryError(
                self._repository_path, "no commit to start from"
            ) from e

        self._attempts: list[ChangeAttempt] = []
        logger.debug(
            "Workspace opened at {path} on {revision}",
            path=str(self._repository_path),
            revision=self._initial_revision,
        )

    @classmethod
    def from_config(cls, config: Config) -> Workspace:
        """Build a workspace from the workspace and commands sections."""
        settings = config.workspace
        return cls(
            settings.repository_path,
            commands=config.commands.get("git"),
            committer_name=settings.committer_name,
            committer_email=settings.committer_email,
            commit_message=settings.commit_message,
            stash_message=settings.stash_message,
        )

    @property
    def repository_path(self) -> Path:
        return self._repository_path

    @property
    def initial_revision(self) -> str:
        """Revision HEAD pointed at when the workspace was created."""
        return self._initial_revision

    @property
    def change_attempts(self) -> list[ChangeAttempt]:
        """Every attempt, in the order they ran."""
        return list(self._attempts)

    @property
    def failed_change_attempts(self) -> list[ChangeAttempt]:
        return [attempt for attempt in self._attempts if attempt.has_error]

    @property
    def changes(self) -> list[str]:
        """Diffs of the successful attempts, in the order they ran."""
        return [attempt.diff for attempt in self._attempts if attempt.success]

    @property
    def dirty(self) -> bool:
        """True if the tree holds changes no attempt has recorded."""
        return self.backend.has_pending_changes()

    def attempt_change(
        self, mutation: Callable[[], Any], memo: str | None = None
    ) -> ChangeAttempt:
        """Run mutation as one attempt and record its outcome.

        The mutation runs with the process working directory set to
        the repository root. Whatever it raises is re-raised after the
        attempt has been recorded and its edits stashed.

        Args:
            mutation: Zero-argument callable that edits the tree
            memo: Short description of what the mutation does; also
                used as the commit or stash message

        Returns:
            The recorded attempt
        """
        with self.change(memo):
            mutation()
        return self._attempts[-1]

    @contextlib.contextmanager
    def change(self, memo: str | None = None) -> Iterator[Path]:
        """Context manager form of attempt_change().

        The body of the with block is the mutation:

            with workspace.change("bump rack"):
                run_bundler()

        KeyboardInterrupt and other BaseExceptions are not recorded as
        attempts; their edits are stashed all the same.
        """
        with logger.span("Change attempt", memo=memo):
            try:
                with contextlib.chdir(self._repository_path):
                    yield self._repository_path
            except Exception as error:
                attempt = self._capture_failed_attempt(memo, error)
                self._attempts.append(attempt)
                logger.warn(
                    "Change attempt failed: {error}",
                    error=str(attempt.error),
                    snapshot=attempt.id,
                )
                raise
            except BaseException:
                # Interrupts are not recorded, but the tree still goes
                # back to the last successful state
                if self.backend.has_pending_changes():
                    snapshot = self.backend.snapshot_and_revert(memo)
                    logger.warn(
                        "Change attempt interrupted", snapshot=snapshot
                    )
                raise
            attempt = self._capture_change(memo)
            self._attempts.append(attempt)
            logger.info(
                "Change attempt succeeded", revision=attempt.id
            )

    def store_change(self, memo: str | None = None) -> ChangeAttempt | None:
        """Record changes already sitting in the tree as an attempt.

        For edits made outside attempt_change(). Returns None, and
        records nothing, when the tree is clean.
        """
        if not self.backend.has_pending_changes():
            return None
        attempt = self._capture_change(memo)
        self._attempts.append(attempt)
        return attempt

    def to_patch(self) -> str:
        """Diff from initial_revision to HEAD, as a single patch."""
        return self.backend.diff(self._initial_revision, "HEAD")

    def _capture_change(self, memo: str | None) -> ChangeAttempt:
        if self.backend.has_pending_changes():
            self.backend.stage_all()
            diff = self.backend.staged_diff()
            if diff:
                revision = self.backend.commit(memo)
                return ChangeAttempt(id=revision, diff=diff, memo=memo)
        return ChangeAttempt(
            id=self.backend.current_revision(), diff="", memo=memo
        )

    def _capture_failed_attempt(
        self, memo: str | None, error: Exception
    ) -> ChangeAttempt:
        if self.backend.has_pending_changes():
            snapshot = self.backend.snapshot_and_revert(memo)
            diff = self.backend.diff_of_snapshot(snapshot)
        else:
            snapshot = self.backend.current_revision()
            diff = ""
        return ChangeAttempt(
            id=snapshot,
            diff=diff,
            memo=memo,
            error=AttemptError.from_exception(error),
        )

    def __repr__(self) -> str:
        return (
            f"Workspace({str(self._repository_path)!r}, "
            f"attempts={len(self._attempts)})"
        )
