"""
Base class for scan sources.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .._types import ScanEntry


class ScanSource(ABC):
    """A source of {ip, mac} snapshots for the local segment."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of this scan source."""
        pass

    @abstractmethod
    async def scan(self) -> list[ScanEntry]:
        """
        Take one snapshot of the devices answering on the segment.

        Must fail closed: any tool failure yields an empty list.
        """
        pass
