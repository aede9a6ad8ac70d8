"""Blocking child-process execution.

Every invocation gets an explicit :class:`CommandContext` (working directory
plus a copy of the inherited environment with overrides) instead of relying
on the process-wide cwd and environment.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from hanode.errors import ExternalCommandFailed

log = logging.getLogger("hanode.commands")

Command = Union[str, list[str]]


@dataclass(frozen=True)
class CommandContext:
    cwd: Optional[Path] = None
    # None inherits the current process environment; a dict (even empty) is used as is.
    env: Optional[dict] = None

    @classmethod
    def inherit(cls, cwd: Optional[Path] = None, **overrides: str) -> "CommandContext":
        """Snapshot ``os.environ`` now and layer ``overrides`` on top."""
        env = dict(os.environ)
        env.update(overrides)
        return cls(cwd=Path(cwd) if cwd is not None else None, env=env)

    def with_env(self, **overrides: str) -> "CommandContext":
        env = dict(os.environ if self.env is None else self.env)
        env.update(overrides)
        return CommandContext(cwd=self.cwd, env=env)


@dataclass
class CommandResult:
    command: Command
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def error_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


def run_command(command: Command, context: Optional[CommandContext] = None,
                description: str = "", input: Optional[bytes] = None,
                check: bool = True) -> CommandResult:
    """Run ``command`` to completion and capture its output.

    A string is run through the shell (build commands come verbatim from the
    project config); a list is executed directly. With ``check`` a non-zero
    exit raises :class:`ExternalCommandFailed` carrying the captured streams.
    """
    if context is None:
        context = CommandContext.inherit()
    shell = isinstance(command, str)
    cwd = str(context.cwd) if context.cwd is not None else None

    try:
        proc = subprocess.run(
            command,
            cwd=cwd,
            env=context.env,
            input=input,
            stdin=None if input is not None else subprocess.DEVNULL,
            capture_output=True,
            shell=shell,
        )
    except OSError as e:
        # The executable (or cwd) is missing; report it like any other failure.
        raise ExternalCommandFailed(command, context.cwd, 127, stderr=str(e).encode(),
                                    description=description) from e

    result = CommandResult(command, proc.returncode, proc.stdout or b"", proc.stderr or b"")
    if check and not result.ok:
        log.error(f"Error {description or 'running command'}: exit code {result.returncode}")
        raise ExternalCommandFailed(command, context.cwd, result.returncode,
                                    result.stdout, result.stderr, description)
    return result
