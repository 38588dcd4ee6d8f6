"""
Runs nimbus-fml sub-commands as child processes.
"""

import logging
import os
import shlex
import subprocess
from typing import List, Optional, Sequence

from fmlgen.fmlgen_exceptions import SubprocessFailure
from fmlgen.fmlgen_logger import FmlLogger

# Exit status reported when the command cannot be started at all, as a shell would.
COMMAND_NOT_FOUND = 127


def _repo_file_args(repo_files: Sequence[str]) -> List[str]:
    args = []
    for repo_file in repo_files:
        args.extend(["--repo-file", repo_file])
    return args


def validate_args(repo_files: Sequence[str], cache_dir: str, fml_file: str) -> List[str]:
    """
    Arguments for `nimbus-fml validate`, which loads the manifest and reports
    warnings or errors for each channel.
    """
    return ["validate", *_repo_file_args(repo_files), "--cache-dir", cache_dir, fml_file]


def generate_args(
    repo_files: Sequence[str],
    channel: str,
    language: str,
    cache_dir: str,
    input_pattern: str,
    output_dir: str,
) -> List[str]:
    """Arguments for `nimbus-fml generate`."""
    return [
        "generate",
        *_repo_file_args(repo_files),
        "--channel",
        channel,
        "--language",
        language,
        "--cache-dir",
        cache_dir,
        input_pattern,
        output_dir,
    ]


class ToolInvoker:
    """
    Runs argument vectors against a command prefix, one after the other.

    The child inherits stdout and stderr so its output streams straight into
    the build log. The first failure stops the run.
    """

    def __init__(
        self,
        command_prefix: Sequence[str],
        logger: FmlLogger,
        cwd: Optional[str] = None,
        display_root: Optional[str] = None,
    ):
        """
        Args:
            command_prefix: The executable, possibly followed by fixed arguments
            logger: Logger the commands are echoed to
            cwd: Working directory of the child processes
            display_root: Path abbreviated to `$SOURCE_ROOT` when echoing commands
        """
        self.command_prefix = list(command_prefix)
        self.logger = logger
        self.cwd = cwd
        self.display_root = display_root

    def _render(self, arg: str) -> str:
        if self.display_root:
            root = self.display_root.rstrip(os.sep)
            rest = arg[len(root):]
            if arg.startswith(root) and (not rest or rest.startswith(os.sep)):
                return "$SOURCE_ROOT" + (shlex.quote(rest) if rest else "")
        return shlex.quote(arg)

    def display(self, command: Sequence[str]) -> str:
        """
        Returns a copy/pastable rendering of the command.

        Arguments under `display_root` start with `$SOURCE_ROOT`, left outside
        any quoting so the shell expands it.
        """
        return " ".join(self._render(arg) for arg in command)

    def run(self, args: Sequence[str]) -> None:
        """
        Run a single command.

        Raises:
            SubprocessFailure: If the command cannot be started or exits non-zero
        """
        command = self.command_prefix + list(args)
        self.logger.log(self.display(command), logging.INFO)
        try:
            completed = subprocess.run(command, cwd=self.cwd, check=False)
        except OSError as e:
            raise SubprocessFailure(f"Failed to start {command[0]}: {e}", COMMAND_NOT_FOUND) from e

        if completed.returncode != 0:
            raise SubprocessFailure(
                f"{self.display(command)} exited with status {completed.returncode}",
                completed.returncode,
            )

    def run_all(self, arg_vectors: Sequence[Sequence[str]]) -> None:
        for args in arg_vectors:
            self.run(args)
