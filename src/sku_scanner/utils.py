"""
Bounded external command execution.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of an external command. returncode is -1 on timeout or spawn failure."""
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(*argv: str, timeout: float) -> CommandResult:
    """
    Run a command and collect its output, bounded by `timeout` seconds.

    A command that overruns is killed and reported as a failure. Never raises
    for spawn errors or timeouts.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return CommandResult(-1, "", str(e))

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        return CommandResult(-1, "", f"{argv[0]} timed out after {timeout}s")

    return CommandResult(
        proc.returncode,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )
