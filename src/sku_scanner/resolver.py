"""
Hostname resolution for discovered devices.

Reverse-resolves an IP with `host -W1` and strips the local domain. When the
PTR answer is not in the local domain, falls back to reading /etc/hostname
from the device itself.

Return contract of HostResolver.resolve():
    None  - resolver failure (non-zero exit, timeout)
    ""    - resolved, but not publishable (gateway, foreign host)
    name  - short hostname
"""

from __future__ import annotations

import logging
from typing import Optional

from .remote_probe import RemoteProbe
from .utils import run_command

logger = logging.getLogger(__name__)

GATEWAY_NAME = "_gateway"


class HostResolver:
    """Reverse DNS / mDNS resolver with an on-device fallback."""

    def __init__(
        self,
        fallback: Optional[RemoteProbe] = None,
        domain: str = "local",
        timeout: float = 5.0,
    ):
        """
        Initialize resolver.

        Args:
            fallback: Probe used to read the on-device hostname
            domain: Local domain whose suffix is stripped
            timeout: Seconds before a hung `host` lookup is killed
        """
        self.fallback = fallback
        self.domain = domain
        self.timeout = timeout

    async def resolve(self, ip: str) -> Optional[str]:
        result = await run_command("host", "-W1", ip, timeout=self.timeout)

        if not result.ok:
            logger.debug(f"{ip}: host exited with code {result.returncode}")
            return None

        name = self.parse_ptr(result.stdout)
        if name is None:
            return ""

        short = self.local_name(name)
        if short is not None:
            return short

        if name.split(".")[0] == GATEWAY_NAME:
            return ""

        if self.fallback is None:
            return ""

        logger.debug(f"{ip}: {name} is outside .{self.domain}, asking the device")
        return await self.fallback.hostname(ip) or ""

    @staticmethod
    def parse_ptr(output: str) -> Optional[str]:
        """
        Extract the PTR target from `host` output.

        e.g. "5.0.0.10.in-addr.arpa domain name pointer box.local." -> "box.local."
        """
        parts = output.split(" ")
        if len(parts) < 5:
            return None
        return parts[-1].strip()

    def local_name(self, name: str) -> Optional[str]:
        """
        Short name if `name` is in the local domain, else None.

        "box.local." -> "box", "box.local" -> "box"
        """
        labels = name.rstrip(".").split(".")
        if labels[-1] != self.domain:
            return None
        if len(labels) < 2:
            return ""
        return labels[-2]
