"""
Active ARP scanning using arp-scan.

Requires arp-scan installed and sudo rights for the service user.
"""

from __future__ import annotations

import logging
from typing import Optional

from .._types import ScanEntry
from ..utils import run_command
from .base import ScanSource

logger = logging.getLogger(__name__)

# One "<ip>\t<mac>" line per host, no header/footer (-x)
ARP_SCAN_FORMAT = "${ip}\t${mac}"


class ARPScanDiscovery(ScanSource):
    """Scan the local network with `arp-scan --localnet`."""

    def __init__(
        self,
        interface: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize ARP scan source.

        Args:
            interface: Network interface to use (None lets arp-scan pick)
            timeout: Seconds before a hung arp-scan is killed
        """
        self.interface = interface
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "arp-scan"

    def build_command(self) -> list[str]:
        cmd = ["sudo", "arp-scan", "-lx", "-F", ARP_SCAN_FORMAT]
        if self.interface:
            logger.debug(f"Using interface {self.interface}")
            cmd.extend(["-I", self.interface])
        return cmd

    async def scan(self) -> list[ScanEntry]:
        result = await run_command(*self.build_command(), timeout=self.timeout)

        if not result.ok:
            logger.debug(
                f"arp-scan exited with code {result.returncode}: {result.stderr.strip()}"
            )
            return []

        return self.parse_output(result.stdout)

    @staticmethod
    def parse_output(output: str) -> list[ScanEntry]:
        """Parse tab-separated ip/mac lines, skipping incomplete ones."""
        entries = []
        for line in output.splitlines():
            parts = line.split("\t")
            if len(parts) < 2:
                continue
            ip, mac = parts[0].strip(), parts[1].strip()
            if ip and mac:
                entries.append(ScanEntry(ip=ip, mac=mac.lower()))
        return entries
