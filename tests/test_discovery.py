"""Tests for scan sources."""

import pytest
from unittest.mock import AsyncMock, patch

from sku_scanner._types import ScanEntry
from sku_scanner.discovery import ARPScanDiscovery, ScanSource
from sku_scanner.utils import CommandResult


class TestARPScanCommand:
    """Tests for arp-scan invocation."""

    def test_default_command(self):
        discovery = ARPScanDiscovery()

        assert discovery.build_command() == [
            "sudo", "arp-scan", "-lx", "-F", "${ip}\t${mac}",
        ]

    def test_interface_is_passed_through(self):
        discovery = ARPScanDiscovery(interface="eth1")

        assert discovery.build_command()[-2:] == ["-I", "eth1"]

    def test_is_scan_source(self):
        discovery = ARPScanDiscovery()
        assert isinstance(discovery, ScanSource)
        assert discovery.name == "arp-scan"


class TestARPScanParsing:
    """Tests for arp-scan output parsing."""

    def test_parse_lines(self):
        output = "10.0.0.1\t00:11:22:33:44:55\n10.0.0.5\tAA:BB:CC:DD:EE:FF\n"

        entries = ARPScanDiscovery.parse_output(output)

        assert entries == [
            ScanEntry(ip="10.0.0.1", mac="00:11:22:33:44:55"),
            ScanEntry(ip="10.0.0.5", mac="aa:bb:cc:dd:ee:ff"),
        ]

    def test_skips_incomplete_lines(self):
        output = "\n10.0.0.1\n\t00:11:22:33:44:55\n10.0.0.2\t00:11:22:33:44:66\n"

        entries = ARPScanDiscovery.parse_output(output)

        assert entries == [ScanEntry(ip="10.0.0.2", mac="00:11:22:33:44:66")]

    def test_keeps_duplicates(self):
        """Deduplication is the reconciliation loop's job."""
        output = "10.0.0.1\taa:bb\n10.0.0.2\taa:bb\n"

        assert len(ARPScanDiscovery.parse_output(output)) == 2


class TestARPScan:
    """Tests for running the scan."""

    @pytest.mark.asyncio
    async def test_scan_success(self):
        discovery = ARPScanDiscovery(interface="eth0", timeout=7)
        run = AsyncMock(return_value=CommandResult(0, "10.0.0.5\taa:bb\n"))

        with patch("sku_scanner.discovery.arp_discovery.run_command", run):
            entries = await discovery.scan()

        assert entries == [ScanEntry(ip="10.0.0.5", mac="aa:bb")]
        assert run.call_args.kwargs["timeout"] == 7

    @pytest.mark.asyncio
    async def test_scan_fails_closed(self):
        """Non-zero exit yields an empty snapshot."""
        discovery = ARPScanDiscovery()
        run = AsyncMock(return_value=CommandResult(1, "10.0.0.5\taa:bb\n", "permission denied"))

        with patch("sku_scanner.discovery.arp_discovery.run_command", run):
            assert await discovery.scan() == []

    @pytest.mark.asyncio
    async def test_scan_timeout_is_empty(self):
        discovery = ARPScanDiscovery()
        run = AsyncMock(return_value=CommandResult(-1, "", "arp-scan timed out"))

        with patch("sku_scanner.discovery.arp_discovery.run_command", run):
            assert await discovery.scan() == []
