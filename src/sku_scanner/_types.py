"""
Type definitions for the SKU scanner.

These dataclasses define the core domain model for device presence
tracking and SKU classification.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def now_utc() -> datetime:
    """Get current UTC timestamp (replaces deprecated datetime.utcnow())."""
    return datetime.now(timezone.utc)


# Devices whose consecutive failed probes exceed this are no longer probed
MAX_TOLERANCE = 5

# Scan-silence after which a device is dropped from the table
DEVICE_TTL = timedelta(seconds=60)

# Target period of one reconciliation cycle
SCAN_INTERVAL = timedelta(seconds=10)


@dataclass(frozen=True)
class ScanEntry:
    """One {ip, mac} pair answering ARP on the segment."""
    ip: str
    mac: str


class DeviceProjection(BaseModel):
    """
    Public, read-only view of a SKU device.

    Serialized with camelCase keys (buildStamp, biosVersion) for the
    /devices endpoint.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    ip: str
    mac: str
    build_stamp: str
    bios_version: Optional[str] = None
    kernel: Optional[str] = None


@dataclass
class Device:
    """
    A device observed on the network segment, keyed by MAC.

    hostname semantics:
        None  - not resolved (yet, or resolver failed)
        ""    - resolved but not publishable (gateway, foreign domain)
        other - short hostname with the domain suffix stripped
    """
    mac: str
    ip: str
    hostname: Optional[str] = None

    # SKU fields, only set once a build stamp was read
    build_stamp: Optional[str] = None
    bios_version: Optional[str] = None
    kernel: Optional[str] = None

    seen: datetime = field(default_factory=now_utc)

    # Consecutive failed classification attempts since the last success
    tolerance: int = 0

    @property
    def is_sku(self) -> bool:
        """A device is a SKU device once it has a build stamp."""
        return self.build_stamp is not None

    @property
    def throttled(self) -> bool:
        return self.tolerance > MAX_TOLERANCE

    @property
    def needs_probe(self) -> bool:
        """Whether the reconciliation loop should (re-)classify this device."""
        return not self.is_sku and not self.throttled

    @property
    def projection(self) -> Optional[DeviceProjection]:
        """Frozen copy of the public fields, or None for non-SKU devices."""
        if not self.is_sku:
            return None
        return DeviceProjection(
            ip=self.ip,
            mac=self.mac,
            build_stamp=self.build_stamp,
            bios_version=self.bios_version,
            kernel=self.kernel,
        )

    def touch(self, now: datetime) -> None:
        """Mark the device as seen; never moves `seen` backwards."""
        if now > self.seen:
            self.seen = now

    def record_failure(self) -> None:
        self.tolerance += 1

    def record_classification(
        self,
        build_stamp: str,
        bios_version: Optional[str] = None,
        kernel: Optional[str] = None,
    ) -> None:
        """Store SKU metadata and reset the failure counter."""
        self.build_stamp = build_stamp
        self.bios_version = bios_version
        self.kernel = kernel
        self.tolerance = 0


@dataclass
class CycleResult:
    """Summary of one reconciliation cycle."""
    started_at: datetime = field(default_factory=now_utc)
    completed_at: Optional[datetime] = None

    devices_found: int = 0
    new_devices: int = 0
    evicted_devices: int = 0
    ignored_devices: int = 0
    probed_devices: int = 0
    classified_devices: int = 0

    next_delay_seconds: float = 0.0

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()
