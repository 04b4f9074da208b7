"""In-memory zone directory, for tests and local runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from router_ddns.errors import ZoneUnavailableError
from router_ddns.providers.base import (
    BaseZoneDirectory,
    ChangeKind,
    match_zone,
    normalize_name,
)

if TYPE_CHECKING:
    from collections.abc import Iterable


class InMemoryZoneDirectory(BaseZoneDirectory):
    """
    Zone directory holding A-records in a dict.

    Zone ids are the zone names themselves.

    Attributes
    ----------
    records : dict[str, str]
        Current A-record value per hostname.
    failing : set[str]
        Hostnames whose upsert raises ``ZoneUnavailableError``.
    upserts : list[tuple[str, str]]
        Every ``(hostname, ip)`` upsert that changed a record.
    """

    def __init__(self, zones: Iterable[str] = ()) -> None:
        self.zones = [normalize_name(zone) for zone in zones]
        self.records: dict[str, str] = {}
        self.failing: set[str] = set()
        self.upserts: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        """Get the provider name."""
        return "memory"

    async def find_zone(self, hostname: str) -> str | None:
        """Find the hosted zone holding a hostname."""
        return match_zone(hostname, ((zone, zone) for zone in self.zones))

    async def upsert_a_record(self, zone_id: str, hostname: str, ip: str) -> ChangeKind:
        """Point the A-record of a hostname at an IPv4 address."""
        if hostname in self.failing:
            msg = f"Simulated provider failure for {hostname}"
            raise ZoneUnavailableError(msg)
        if zone_id not in self.zones:
            msg = f"Unknown zone: {zone_id}"
            raise ZoneUnavailableError(msg)

        if self.records.get(hostname) == ip:
            return ChangeKind.UNCHANGED
        self.records[hostname] = ip
        self.upserts.append((hostname, ip))
        return ChangeKind.CHANGED
