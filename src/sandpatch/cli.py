#!/usr/bin/env python3
"""sandpatch CLI - try changes against a git checkout, keep what works."""

import asyncio
import sys

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from sandpatch.command.apply import ApplyCommand
from sandpatch.command.reset import ResetCommand
from sandpatch.core.config import State
from sandpatch.core.errors import SandpatchError
from sandpatch.core.log import logger


class CliState(State):
    """Apply a sequence of edits to a git checkout as isolated attempts.

    Successful attempts are committed; failed ones are stashed and
    rolled back, so the resulting patch only holds what worked.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.workspace.repository_path DIR)
    2. --include files, ./sandpatch.yaml, the user config file
    3. .env file
    4. Environment variables
       (SANDPATCH_CONFIG__WORKSPACE__REPOSITORY_PATH=DIR)
    """

    apply: CliSubCommand[ApplyCommand]
    reset: CliSubCommand[ResetCommand]

    def cli_cmd(self):
        """Dispatch to active subcommand, or show help if none."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        with logger:
            try:
                exit_code = asyncio.run(subcommand.run_workflow(self))
            except SandpatchError as e:
                logger.error("{error}", error=str(e))
                exit_code = 2
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
