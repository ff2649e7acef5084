"""
Per-device SKU classification.

A classification attempt resolves the device hostname and, for hosts in the
local domain, reads the build stamp over SSH. Devices with a build stamp are
SKU devices and are never probed again. Failed attempts raise the device's
tolerance counter, which the reconciliation loop uses to stop probing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ._types import Device, now_utc
from .remote_probe import RemoteProbe
from .resolver import HostResolver

logger = logging.getLogger(__name__)


@dataclass
class ClassificationOutcome:
    """What one attempt did to the device."""
    mac: str
    resolved: bool
    classified: bool = False
    failed: bool = False


class DeviceClassifier:
    """Runs classification attempts against single devices."""

    def __init__(
        self,
        resolver: HostResolver,
        probe: RemoteProbe,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.resolver = resolver
        self.probe = probe
        self.clock = clock

    async def classify(self, device: Device) -> ClassificationOutcome:
        """
        Run one classification attempt on `device`.

        Never raises; an unexpected error counts as a failed attempt.
        The device is marked seen when the attempt finishes, whatever the
        outcome.
        """
        try:
            return await self._classify(device)
        except Exception:
            logger.exception(f"{device.mac}: classification crashed")
            device.record_failure()
            return ClassificationOutcome(mac=device.mac, resolved=False, failed=True)
        finally:
            device.touch(self.clock())

    async def _classify(self, device: Device) -> ClassificationOutcome:
        ip = device.ip
        hostname = await self.resolver.resolve(ip)

        if hostname is None:
            device.record_failure()
            logger.debug(f"{device.mac}: {ip} unresolved (tolerance={device.tolerance})")
            return ClassificationOutcome(mac=device.mac, resolved=False, failed=True)

        device.hostname = hostname
        if hostname == "":
            return ClassificationOutcome(mac=device.mac, resolved=True)

        build_stamp = await self.probe.build_stamp(ip)
        if build_stamp is None:
            device.record_failure()
            logger.debug(f"{device.mac}: {hostname} has no build stamp (tolerance={device.tolerance})")
            return ClassificationOutcome(mac=device.mac, resolved=True, failed=True)

        bios_version = await self.probe.bios_version(ip)
        kernel = await self.probe.kernel(ip)
        device.record_classification(build_stamp, bios_version, kernel)
        logger.debug(f"SKU device: {device}")

        return ClassificationOutcome(mac=device.mac, resolved=True, classified=True)
