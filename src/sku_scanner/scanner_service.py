"""
SKU Scanner Service - Main reconciliation loop.

Every cycle scans the segment, evicts devices that went silent, merges the
snapshot into the device table and classifies the devices that still need
it. Classification attempts of one cycle run concurrently and the next cycle
starts only after all of them finished, so a device is never probed twice at
the same time.

The HTTP API serves the SKU devices currently in the table.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from aiohttp import web

from ._types import SCAN_INTERVAL, CycleResult, Device, ScanEntry, now_utc
from .classifier import ClassificationOutcome, DeviceClassifier
from .config import ScannerConfig
from .device_table import DeviceTable
from .discovery import ARPScanDiscovery, ScanSource
from .remote_probe import RemoteProbe
from .resolver import HostResolver

logger = logging.getLogger(__name__)

# Exit code asking the process supervisor for a restart
RESTART_EXIT_CODE = 2


class SkuScannerService:
    """
    Main SKU scanner service.

    Owns the device table and runs the self-pacing reconciliation loop.
    """

    def __init__(
        self,
        config: ScannerConfig,
        scan_source: Optional[ScanSource] = None,
        classifier: Optional[DeviceClassifier] = None,
        table: Optional[DeviceTable] = None,
        clock: Callable[[], datetime] = now_utc,
        interval: timedelta = SCAN_INTERVAL,
    ):
        """
        Initialize scanner service.

        Args:
            config: Scanner configuration
            scan_source: Snapshot provider (defaults to arp-scan)
            classifier: Per-device classifier (defaults to host + SSH probes)
            table: Device table (a fresh one if omitted)
            clock: Time source, injectable for tests
            interval: Target period of one cycle
        """
        self.config = config
        self.clock = clock
        self.interval = interval
        self.table = table if table is not None else DeviceTable()

        self.scan_source = scan_source or ARPScanDiscovery(
            interface=config.interface,
            timeout=config.scan_timeout_seconds,
        )

        if classifier is None:
            probe = RemoteProbe(
                username=config.ssh_user,
                timeout=config.ssh_timeout_seconds,
            )
            resolver = HostResolver(
                fallback=probe,
                domain=config.domain,
                timeout=config.resolve_timeout_seconds,
            )
            classifier = DeviceClassifier(resolver, probe, clock=clock)
        self.classifier = classifier

        self.last_cycle: Optional[CycleResult] = None
        self.exit_code = 0

        self._running = False
        self._shutdown_event = asyncio.Event()
        self._cycle_lock = asyncio.Lock()

        self._api_runner: Optional[web.AppRunner] = None
        self._restart_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the API server and run the loop until stop()."""
        logger.info("Starting SKU Scanner Service")
        self._running = True

        await self._start_api_server()
        await self._main_loop()

    async def stop(self) -> None:
        """Stop the scanner service. Safe to call more than once."""
        if self._running:
            logger.info("Stopping SKU Scanner Service")
        self._running = False
        self._shutdown_event.set()

        if self._api_runner:
            runner, self._api_runner = self._api_runner, None
            await runner.cleanup()

    def request_restart(self) -> None:
        """Stop the service with the restart exit code."""
        logger.info("Restart requested, shutting down")
        self.exit_code = RESTART_EXIT_CODE
        self._restart_task = asyncio.create_task(self.stop())

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/devices", self._handle_devices)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/pm2-restart", self._handle_restart)
        return app

    async def _start_api_server(self) -> None:
        self._api_runner = web.AppRunner(self.build_app())
        await self._api_runner.setup()
        site = web.TCPSite(self._api_runner, self.config.api_host, self.config.api_port)
        await site.start()
        logger.info(f"API server started on {self.config.api_host}:{self.config.api_port}")

    async def _main_loop(self) -> None:
        """Run cycles back to back, pacing them to `interval`."""
        logger.info("Reconciliation loop started")

        while self._running:
            delay = self.interval.total_seconds()
            try:
                result = await self.run_cycle()
                delay = result.next_delay_seconds
            except Exception:
                logger.exception("Error in reconciliation cycle")

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

        logger.info("Reconciliation loop stopped")

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def run_cycle(self) -> CycleResult:
        """
        Run one reconciliation cycle: scan, evict, merge, probe, join.

        Cycles never overlap; a concurrent call waits for the running one.
        """
        async with self._cycle_lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> CycleResult:
        result = CycleResult(started_at=self.clock())
        logger.info("Scanning...")

        entries = await self._scan()

        now = self.clock()
        result.evicted_devices = len(self.table.evict_stale(now))

        queue = self._merge(entries, now, result)
        outcomes = await self._probe_all(queue)

        result.probed_devices = len(queue)
        result.classified_devices = sum(1 for o in outcomes if o.classified)
        result.completed_at = self.clock()

        # Within [0, interval] even across wall clock steps
        interval = self.interval.total_seconds()
        elapsed = result.duration_seconds
        result.next_delay_seconds = min(interval, max(0.0, interval - elapsed))
        self.last_cycle = result

        logger.info(
            f"Scan done: {result.devices_found} devices, {result.new_devices} new, "
            f"{result.evicted_devices} gone, {result.probed_devices} probed, "
            f"next in {result.next_delay_seconds * 1000:.0f}ms"
        )
        return result

    async def _scan(self) -> list[ScanEntry]:
        try:
            return await self.scan_source.scan()
        except Exception as e:
            logger.error(f"Error in {self.scan_source.name} scan: {e}")
            return []

    def _merge(
        self,
        entries: list[ScanEntry],
        now: datetime,
        result: CycleResult,
    ) -> list[Device]:
        """
        Merge one snapshot into the table.

        Returns the devices to classify this cycle, each at most once.
        """
        queue: list[Device] = []
        macs: set[str] = set()

        for entry in entries:
            mac = entry.mac.lower()
            if mac in macs:
                continue
            if mac in self.config.ignore_macs:
                logger.debug(f"Ignore: {mac}")
                result.ignored_devices += 1
                continue
            macs.add(mac)

            is_new = mac not in self.table
            device = self.table.upsert(mac, entry.ip, now)
            if is_new:
                result.new_devices += 1
            else:
                device.touch(now)
                if device.ip != entry.ip:
                    logger.debug(f"{mac} IP: {device.ip} -> {entry.ip}")
                    device.ip = entry.ip
                if not device.needs_probe:
                    continue

            queue.append(device)

        result.devices_found = len(macs)
        return queue

    async def _probe_all(self, devices: list[Device]) -> list[ClassificationOutcome]:
        """Classify `devices` concurrently and wait for every attempt."""
        if not devices:
            return []

        tasks = [
            asyncio.create_task(self.classifier.classify(device), name=f"classify-{device.mac}")
            for device in devices
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes = []
        for device, outcome in zip(devices, results):
            if isinstance(outcome, BaseException):
                logger.error(f"Classification of {device.mac} failed: {outcome}")
                continue
            outcomes.append(outcome)
        return outcomes

    # -------------------------------------------------------------------------
    # API Handlers
    # -------------------------------------------------------------------------

    async def _handle_devices(self, request: web.Request) -> web.Response:
        """Handle GET /devices."""
        try:
            accept = request.headers.get("Accept", "")
            logger.debug(f"Accept: {accept}")

            projections = self.table.projections()

            if "application/json" in accept:
                return web.json_response({
                    hostname: projection.model_dump(by_alias=True)
                    for hostname, projection in projections
                })

            return web.Response(text=",".join(hostname or "" for hostname, _ in projections))

        except Exception as e:
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=500,
            )

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /health."""
        latest = self.last_cycle

        return web.json_response({
            "status": "ok",
            "service": "sku-scanner",
            "devices": len(self.table),
            "sku_devices": len(self.table.sku_devices()),
            "last_cycle": latest.started_at.isoformat() if latest else None,
        })

    async def _handle_restart(self, request: web.Request) -> web.Response:
        """Handle GET /pm2-restart."""
        delay = self.config.restart_delay_seconds
        asyncio.get_running_loop().call_later(delay, self.request_restart)
        return web.Response(text=f"Restart in {delay:g} seconds")


def main():
    """Entry point for sku-scanner service."""
    import argparse

    parser = argparse.ArgumentParser(description="SKU Scanner Service")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--host", type=str, help="API host")
    parser.add_argument("--port", type=int, help="API port")
    parser.add_argument("--log-level", type=str, help="Log level")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    # Load configuration
    if args.config:
        config = ScannerConfig.from_yaml(Path(args.config))
    else:
        config = ScannerConfig.from_env()

    # Override with CLI args
    if args.host:
        config.api_host = args.host
    if args.port:
        config.api_port = args.port
    if args.log_level:
        config.log_level = args.log_level
    if args.debug:
        config.debug = True

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.effective_log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if config.debug:
        logger.info("DEBUG mode is on")

    # Validate
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        sys.exit(1)

    # Create service
    service = SkuScannerService(config)

    # Handle signals
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(service.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        loop.run_until_complete(service.stop())
        loop.close()

    sys.exit(service.exit_code)


if __name__ == "__main__":
    main()
