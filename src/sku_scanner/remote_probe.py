"""
Remote metadata probe over SSH.

Reads the build stamp, BIOS version, kernel release and hostname from a
candidate SKU device using asyncssh. Every read is independent and bounded;
any failure yields None.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import asyncssh

logger = logging.getLogger(__name__)

BUILD_STAMP_PATH = "/etc/buildstamp"
BIOS_VERSION_PATH = "/sys/class/dmi/id/bios_version"
HOSTNAME_PATH = "/etc/hostname"


def first_stamp_line(content: str) -> Optional[str]:
    """Return the first line that is neither blank nor a # comment."""
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        return line
    return None


class RemoteProbe:
    """
    Run read-only commands on a device over SSH.

    Key/agent authentication only, host keys are not verified (devices are
    re-imaged and their keys change).
    """

    def __init__(self, username: str = "u", timeout: float = 2.0):
        """
        Initialize probe.

        Args:
            username: SSH login user on SKU devices
            timeout: Seconds allowed for connect + command
        """
        self.username = username
        self.timeout = timeout

    async def _run(self, ip: str, command: str) -> Optional[str]:
        """Run `command` on `ip`, returning trimmed stdout or None."""
        try:
            return await asyncio.wait_for(self._exec(ip, command), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.debug(f"{ip}: '{command}' took too long, aborted after {self.timeout}s")
        except asyncssh.Error as e:
            logger.debug(f"{ip}: SSH error running '{command}': {e}")
        except OSError as e:
            logger.debug(f"{ip}: cannot connect for '{command}': {e}")
        return None

    async def _exec(self, ip: str, command: str) -> Optional[str]:
        async with asyncssh.connect(
            ip,
            username=self.username,
            known_hosts=None,
            preferred_auth="publickey",
            connect_timeout=self.timeout,
        ) as conn:
            result = await conn.run(command, check=False)

        if result.exit_status != 0:
            logger.debug(f"{ip}: '{command}' exited with code {result.exit_status}")
            return None

        return str(result.stdout or "").strip()

    async def build_stamp(self, ip: str) -> Optional[str]:
        content = await self._run(ip, f"cat {BUILD_STAMP_PATH}")
        if not content:
            return None
        return first_stamp_line(content)

    async def bios_version(self, ip: str) -> Optional[str]:
        return await self._run(ip, f"cat {BIOS_VERSION_PATH}")

    async def kernel(self, ip: str) -> Optional[str]:
        return await self._run(ip, "uname -r")

    async def hostname(self, ip: str) -> Optional[str]:
        """On-device hostname, used when reverse DNS is not conclusive."""
        return await self._run(ip, f"cat {HOSTNAME_PATH}")
