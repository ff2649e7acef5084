"""
SKU Scanner - Presence tracking and SKU classification for a LAN segment.

Continuously ARP-scans the local segment, keeps an in-memory table of the
devices answering, and classifies as SKU devices those exposing a build
stamp over SSH. The current SKU devices are served over HTTP.

Architecture:
    discovery/     - scan sources producing {ip, mac} snapshots
    resolver       - reverse DNS with on-device hostname fallback
    remote_probe   - SSH reads of build stamp, BIOS version, kernel
    classifier     - one classification attempt per device
    device_table   - MAC-keyed table with TTL eviction
    scanner_service - reconciliation loop and HTTP API

The table lives in memory only; a restart starts from an empty table.
"""

__version__ = "1.0.0"

from ._types import (
    Device,
    DeviceProjection,
    ScanEntry,
    CycleResult,
    MAX_TOLERANCE,
    DEVICE_TTL,
    SCAN_INTERVAL,
)

__all__ = [
    "__version__",
    "Device",
    "DeviceProjection",
    "ScanEntry",
    "CycleResult",
    "MAX_TOLERANCE",
    "DEVICE_TTL",
    "SCAN_INTERVAL",
]
