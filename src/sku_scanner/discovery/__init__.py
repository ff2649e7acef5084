"""
Scan sources for the reconciliation loop.

Each source implements the same interface:
- async scan() -> list[ScanEntry]
"""

from .base import ScanSource
from .arp_discovery import ARPScanDiscovery

__all__ = [
    "ScanSource",
    "ARPScanDiscovery",
]
