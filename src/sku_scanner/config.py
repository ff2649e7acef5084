"""
SKU scanner configuration.

Loaded from environment variables (DEBUG, IF, IGNORE, PORT, ...) or from
an optional YAML file. CLI arguments in main() override both.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_API_PORT = 2991


def parse_mac_list(value: str) -> frozenset[str]:
    """Parse a comma-separated MAC list into a normalized set."""
    return frozenset(
        mac.strip().lower()
        for mac in value.split(",")
        if mac.strip()
    )


def _parse_port(value: Optional[str]) -> int:
    try:
        port = int(value or "")
    except ValueError:
        return DEFAULT_API_PORT
    return port or DEFAULT_API_PORT


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() not in ("", "0", "false", "no")


@dataclass
class ScannerConfig:
    """SKU scanner configuration."""

    # Verbose logging of transient failures
    debug: bool = False

    # Network interface passed to arp-scan (None lets arp-scan pick)
    interface: Optional[str] = None

    # MACs that never enter the device table
    ignore_macs: frozenset[str] = field(default_factory=frozenset)

    # Resolver
    domain: str = "local"
    resolve_timeout_seconds: float = 5.0

    # Remote probe
    ssh_user: str = "u"
    ssh_timeout_seconds: float = 2.0

    # Scanning
    scan_timeout_seconds: float = 30.0

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = DEFAULT_API_PORT
    restart_delay_seconds: float = 5.0

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ScannerConfig":
        """Load configuration from environment variables."""
        config = cls()

        config.debug = _env_flag("DEBUG")
        config.interface = os.getenv("IF") or None
        config.ignore_macs = parse_mac_list(os.getenv("IGNORE", ""))

        config.domain = os.getenv("DOMAIN", "local")
        config.ssh_user = os.getenv("SSH_USER", "u")

        config.resolve_timeout_seconds = float(os.getenv("RESOLVE_TIMEOUT", "5"))
        config.ssh_timeout_seconds = float(os.getenv("SSH_TIMEOUT", "2"))
        config.scan_timeout_seconds = float(os.getenv("SCAN_TIMEOUT", "30"))

        config.api_host = os.getenv("API_HOST", "0.0.0.0")
        config.api_port = _parse_port(os.getenv("PORT"))
        config.restart_delay_seconds = float(os.getenv("RESTART_DELAY", "5"))

        config.log_level = os.getenv("LOG_LEVEL", "INFO")

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "ScannerConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        config.debug = bool(data.get("debug", False))
        config.interface = data.get("interface")

        ignore = data.get("ignore") or []
        if isinstance(ignore, str):
            config.ignore_macs = parse_mac_list(ignore)
        else:
            config.ignore_macs = parse_mac_list(",".join(ignore))

        if "resolver" in data:
            r = data["resolver"]
            config.domain = r.get("domain", "local")
            config.resolve_timeout_seconds = float(r.get("timeout", 5))

        if "ssh" in data:
            s = data["ssh"]
            config.ssh_user = s.get("user", "u")
            config.ssh_timeout_seconds = float(s.get("timeout", 2))

        if "scan" in data:
            config.scan_timeout_seconds = float(data["scan"].get("timeout", 30))

        if "api" in data:
            a = data["api"]
            config.api_host = a.get("host", "0.0.0.0")
            config.api_port = int(a.get("port", DEFAULT_API_PORT))
            config.restart_delay_seconds = float(a.get("restart_delay", 5))

        config.log_level = data.get("log_level", "INFO")

        return config

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()

    def validate(self) -> list[str]:
        """Validate configuration, returning list of errors."""
        errors = []

        if not 0 < self.api_port < 65536:
            errors.append(f"Invalid API port: {self.api_port}")

        for name in (
            "resolve_timeout_seconds",
            "ssh_timeout_seconds",
            "scan_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if self.restart_delay_seconds < 0:
            errors.append("restart_delay_seconds must not be negative")

        if not self.domain:
            errors.append("No resolver domain configured")

        return errors


# Example sku_scanner.yaml:
"""
debug: false
interface: eth0
ignore:
  - "aa:bb:cc:dd:ee:ff"

resolver:
  domain: local
  timeout: 5

ssh:
  user: u
  timeout: 2

scan:
  timeout: 30

api:
  host: "0.0.0.0"
  port: 2991
  restart_delay: 5

log_level: "INFO"
"""
