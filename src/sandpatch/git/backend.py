"""Version control primitives used by the workspace.

The workspace only needs a handful of operations from its substrate:
read the current revision, diff two revisions, commit everything that
is pending, and shelve everything that is pending while reverting the
tree. VersioningBackend names that contract; GitBackend implements it
with the git command line.
"""

from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from pathlib import Path

from invoke.exceptions import UnexpectedExit

from sandpatch.core.errors import SubstrateError
from sandpatch.core.log import logger
from sandpatch.core.runner import Runner

# Command templates, overridable through config.commands["git"].
DEFAULT_GIT_COMMANDS = {
    "is_work_tree": "git rev-parse --is-inside-work-tree",
    "toplevel": "git rev-parse --show-toplevel",
    "rev_parse": "git rev-parse --verify --quiet {ref}",
    "status": "git status --porcelain --untracked-files=all",
    "add_all": "git add --all .",
    "diff_cached": "git diff --cached --patch --no-color --no-ext-diff",
    "diff": "git diff --patch --no-color --no-ext-diff {base} {head}",
    "commit": (
        "git -c commit.gpgsign=false commit --no-verify --quiet "
        "-m {message}"
    ),
    "stash_push": "git stash push --quiet -m {message}",
    "stash_show": "git stash show --patch --no-color --no-ext-diff {ref}",
    "clean": "git clean -fd .",
    "reset_hard": "git reset --hard --quiet {ref}",
}

# git output is read as latin-1, which maps every byte to one code point,
# then re-decoded as UTF-8 keeping undecodable bytes as surrogates.
RAW_ENCODING = "latin-1"


def _decode(output: str) -> str:
    return output.encode(RAW_ENCODING).decode("utf-8", "surrogateescape")


class VersioningBackend(ABC):
    """Operations a workspace needs from its version control system."""

    @abstractmethod
    def is_work_tree(self) -> bool:
        """Return True if the bound path is inside a work tree."""

    @abstractmethod
    def root(self) -> Path:
        """Return the top directory of the work tree."""

    @abstractmethod
    def current_revision(self) -> str:
        """Return the identifier of the committed state (HEAD)."""

    @abstractmethod
    def pending_changes(self) -> list[str]:
        """List paths with uncommitted changes, untracked included."""

    def has_pending_changes(self) -> bool:
        return bool(self.pending_changes())

    @abstractmethod
    def diff(self, base: str, head: str = "HEAD") -> str:
        """Unified diff between two revisions."""

    @abstractmethod
    def stage_all(self) -> None:
        """Stage every pending change, new files included."""

    @abstractmethod
    def staged_diff(self) -> str:
        """Unified diff of the staged changes against HEAD."""

    @abstractmethod
    def commit(self, label: str | None = None) -> str:
        """Commit the staged changes and return the new revision."""

    @abstractmethod
    def snapshot_and_revert(self, label: str | None = None) -> str:
        """Shelve all pending changes and revert the tree to HEAD.

        Returns:
            Identifier of the snapshot holding the shelved changes
        """

    @abstractmethod
    def diff_of_snapshot(self, snapshot_id: str) -> str:
        """Unified diff recorded in a snapshot."""

    @abstractmethod
    def reset_hard(self, revision: str) -> None:
        """Discard pending changes and move HEAD to revision."""


class GitBackend(VersioningBackend):
    """VersioningBackend driving the git executable.

    Commits are made with a fixed identity passed through the
    environment, so a checkout without user.name/user.email configured
    still works. Snapshots are stash entries; their id is the stash
    commit sha, which stays valid however many stashes are pushed
    later.
    """

    def __init__(
        self,
        path: Path,
        commands: dict[str, str] | None = None,
        committer_name: str = "sandpatch",
        committer_email: str = "sandpatch@localhost",
        commit_message: str = "workspace change",
        stash_message: str = "workspace change attempt",
        runner: Runner | None = None,
    ):
        """Bind to a working tree.

        Args:
            path: Root of the working tree
            commands: Overrides for DEFAULT_GIT_COMMANDS entries
            committer_name: Author and committer name for commits
            committer_email: Author and committer email for commits
            commit_message: Message used when commit() gets no label
            stash_message: Message used when snapshot_and_revert()
                gets no label
            runner: Runner to execute commands with
        """
        self.path = Path(path)
        self.commands = {**DEFAULT_GIT_COMMANDS, **(commands or {})}
        self.commit_message = commit_message
        self.stash_message = stash_message
        self.runner = runner or Runner()
        self.env = {
            "GIT_AUTHOR_NAME": committer_name,
            "GIT_AUTHOR_EMAIL": committer_email,
            "GIT_COMMITTER_NAME": committer_name,
            "GIT_COMMITTER_EMAIL": committer_email,
        }

    def _command(self, name: str, **fields) -> str:
        quoted = {k: shlex.quote(str(v)) for k, v in fields.items()}
        return self.commands[name].format(**quoted)

    def _git(self, name: str, **fields) -> str:
        """Run a named git command and return its stdout.

        Output is read byte for byte and decoded as UTF-8 with
        surrogateescape, so diffs of files in other encodings survive;
        encode with the same error handler to get the bytes back.

        Raises:
            SubstrateError: If the command exits non-zero
        """
        cmd = self._command(name, **fields)
        try:
            result = self.runner.execute(
                cmd,
                cwd=self.path,
                env=self.env,
                check=True,
                encoding=RAW_ENCODING,
            )
        except UnexpectedExit as e:
            raise SubstrateError(
                cmd,
                e.result.exited,
                _decode(e.result.stdout),
                _decode(e.result.stderr),
            ) from e
        return _decode(result.stdout)

    def is_work_tree(self) -> bool:
        result = self.runner.execute(
            self._command("is_work_tree"),
            cwd=self.path,
            env=self.env,
            check=False,
        )
        return result.exited == 0 and result.stdout.strip() == "true"

    def root(self) -> Path:
        return Path(self._git("toplevel").rstrip("\n")).resolve()

    def has_revision(self, ref: str = "HEAD") -> bool:
        """Return True if ref resolves to a commit."""
        result = self.runner.execute(
            self._command("rev_parse", ref=f"{ref}^{{commit}}"),
            cwd=self.path,
            env=self.env,
            check=False,
        )
        return result.exited == 0

    def current_revision(self) -> str:
        return self._git("rev_parse", ref="HEAD").strip()

    def pending_changes(self) -> list[str]:
        # Porcelain lines are "XY path"; renames are "XY old -> new"
        return [
            line[3:]
            for line in self._git("status").splitlines()
            if line.strip()
        ]

    def diff(self, base: str, head: str = "HEAD") -> str:
        return self._git("diff", base=base, head=head)

    def stage_all(self) -> None:
        self._git("add_all")

    def staged_diff(self) -> str:
        return self._git("diff_cached")

    def commit(self, label: str | None = None) -> str:
        self._git("commit", message=label or self.commit_message)
        revision = self.current_revision()
        logger.debug("Committed {revision}", revision=revision)
        return revision

    def snapshot_and_revert(self, label: str | None = None) -> str:
        # Staging first puts new files into the stash alongside edits
        self.stage_all()
        self._git("stash_push", message=label or self.stash_message)
        self._git("clean")
        snapshot_id = self._git("rev_parse", ref="refs/stash").strip()
        logger.debug("Stashed {snapshot}", snapshot=snapshot_id)
        return snapshot_id

    def diff_of_snapshot(self, snapshot_id: str) -> str:
        return self._git("stash_show", ref=snapshot_id)

    def reset_hard(self, revision: str) -> None:
        self._git("reset_hard", ref=revision)
        self._git("clean")
        logger.info("Reset working tree to {revision}", revision=revision)
