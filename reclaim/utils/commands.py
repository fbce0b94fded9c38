"""Subprocess execution helpers.

Commands are always passed as argument lists; nothing here goes through a
shell.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600


@dataclass
class CommandResult:
    """Outcome of a single command invocation."""

    success: bool
    stdout: str
    stderr: str
    return_code: int
    command: str

    @property
    def output(self) -> str:
        """Combined output, stderr first since that is where apt reports errors."""
        return "\n".join(part for part in (self.stderr.strip(), self.stdout.strip()) if part)


def run_command(
    cmd: Sequence[str],
    timeout: int = DEFAULT_TIMEOUT,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    """Execute a command and capture its result.

    Args:
        cmd: Command and arguments.
        timeout: Seconds to wait before giving up.
        env: Extra environment variables layered over the current environment.

    Returns:
        CommandResult. Timeouts and missing executables are reported as
        failed results rather than raised.
    """
    command_str = " ".join(cmd)
    full_env = None
    if env:
        full_env = {**os.environ, **env}

    logger.debug(f"Running: {command_str}")
    try:
        proc = subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            timeout=timeout,
            env=full_env,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(
            success=False,
            stdout="",
            stderr=f"Command timed out after {timeout}s",
            return_code=-1,
            command=command_str,
        )
    except FileNotFoundError:
        return CommandResult(
            success=False,
            stdout="",
            stderr=f"Command not found: {cmd[0]}",
            return_code=127,
            command=command_str,
        )

    return CommandResult(
        success=proc.returncode == 0,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        return_code=proc.returncode,
        command=command_str,
    )
