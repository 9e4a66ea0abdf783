"""Shell command execution on top of invoke."""

import contextlib
import io
import os
import platform
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from sandpatch.core.log import logger


class Runner(Context):
    """invoke.Context with a single execute() entry point.

    Output is always captured rather than echoed; callers decide
    whether and how to log it.
    """

    def kill(self) -> None:
        """Kill the running subprocess.

        invoke sends signal.SIGKILL, which the signal module does not
        define on Windows. os.kill() there hands the number to
        TerminateProcess() as an exit code, so 9 is used directly.
        """
        if platform.system() == "Windows":
            pid = self.pid if self.using_pty else self.process.pid
            with contextlib.suppress(ProcessLookupError):
                os.kill(pid, 9)
            return
        super().kill()

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        stdin: str | None = None,
        log_file: Path | None = None,
        log_level: str | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
        encoding: str | None = None,
    ) -> Result:
        """Run a shell command and return its result.

        Args:
            command: Command string, interpreted by the shell
            cwd: Working directory for the command
            timeout: Maximum execution time in seconds; on expiry the
                result is returned with exit code -1
            stdin: Text fed to the command's stdin
            log_file: Write combined stdout/stderr here
            log_level: Also log each output line at this level
            check: Raise on non-zero exit
            env: Extra environment variables (merged into os.environ)
            encoding: Decode output with this codec instead of the
                locale default

        Returns:
            invoke.Result with stdout, stderr and exited

        Raises:
            invoke.UnexpectedExit: If check is True and the command
                exits non-zero
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": io.StringIO(stdin) if stdin else False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env
        if encoding:
            kwargs["encoding"] = encoding

        logger.trace("Running {command}", command=command, cwd=str(cwd))
        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            result = e.result
            result.exited = -1

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(result.stdout + result.stderr)

        if log_level:
            for line in (result.stdout + result.stderr).splitlines():
                logger.log(log_level, line.rstrip())

        return result
