"""
In-memory device table keyed by MAC address.

Single source of truth for presence and classification. Only the
reconciliation loop inserts and evicts; classification tasks mutate the
fields of the one Device they were handed. All access happens on the event
loop thread, so each method call is atomic with respect to other tasks.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterator, Optional

from ._types import DEVICE_TTL, Device, DeviceProjection, now_utc

logger = logging.getLogger(__name__)


class DeviceTable:
    """Mapping of MAC -> Device with TTL based eviction."""

    def __init__(self, ttl: timedelta = DEVICE_TTL):
        self._devices: dict[str, Device] = {}
        self.ttl = ttl

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, mac: str) -> bool:
        return mac in self._devices

    def get(self, mac: str) -> Optional[Device]:
        return self._devices.get(mac)

    def upsert(self, mac: str, ip: str, now: Optional[datetime] = None) -> Device:
        """
        Return the device for `mac`, creating it if absent.

        An existing entry is returned untouched; refreshing ip/seen is the
        caller's merge decision.
        """
        device = self._devices.get(mac)
        if device is None:
            device = Device(mac=mac, ip=ip, seen=now or now_utc())
            self._devices[mac] = device
        return device

    def evict_stale(self, now: Optional[datetime] = None, ttl: Optional[timedelta] = None) -> list[Device]:
        """Remove every device unseen for at least `ttl`. Returns the removed devices."""
        now = now or now_utc()
        ttl = self.ttl if ttl is None else ttl

        stale = []
        for mac, device in self._devices.items():
            if device.seen > now:
                # Wall clock stepped back; restart the silence window from now
                logger.debug(f"{mac}: seen {device.seen} is ahead of clock, reset to {now}")
                device.seen = now
            elif now - device.seen >= ttl:
                stale.append(mac)
        removed = []
        for mac in stale:
            removed.append(self._devices.pop(mac))
            logger.info(f"Device gone: {mac}")
        return removed

    def values(self) -> list[Device]:
        """Snapshot of the current devices, safe to iterate while the table changes."""
        return list(self._devices.values())

    def __iter__(self) -> Iterator[Device]:
        return iter(self.values())

    def sku_devices(self) -> list[Device]:
        return [d for d in self.values() if d.is_sku]

    def projections(self) -> list[tuple[Optional[str], DeviceProjection]]:
        """(hostname, projection) for every SKU device."""
        return [(d.hostname, d.projection) for d in self.sku_devices()]
