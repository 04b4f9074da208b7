"""
Base class for DNS zone directories.

A zone directory knows which hosted zone holds a hostname and can point an
A-record at an IPv4 address. The reconciler only ever talks to this
interface, so every DNS provider is interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ChangeKind(StrEnum):
    """
    What an A-record upsert did.

    Attributes
    ----------
    CHANGED : str
        The record was created or its value replaced.
    UNCHANGED : str
        The record already held the requested value.
    """

    CHANGED = "changed"
    UNCHANGED = "unchanged"


def normalize_name(name: str) -> str:
    """Strip the trailing root dot and lowercase a DNS name."""
    return name.rstrip(".").lower()


def candidate_zone_names(hostname: str) -> list[str]:
    """
    List the label-aligned suffixes of a hostname, longest first.

    Parameters
    ----------
    hostname : str
        The hostname, e.g. ``"home.example.com"``.

    Returns
    -------
    list[str]
        e.g. ``["home.example.com", "example.com", "com"]``.
    """
    labels = normalize_name(hostname).split(".")
    return [".".join(labels[i:]) for i in range(len(labels))]


def match_zone(hostname: str, zones: Iterable[tuple[str, str]]) -> str | None:
    """
    Pick the zone holding a hostname by longest suffix match.

    Parameters
    ----------
    hostname : str
        The hostname to place.
    zones : Iterable[tuple[str, str]]
        ``(zone_name, zone_id)`` pairs.

    Returns
    -------
    str | None
        The id of the zone whose name is the longest label-aligned suffix
        of ``hostname``, or None.
    """
    by_name = {normalize_name(name): zone_id for name, zone_id in zones}
    for candidate in candidate_zone_names(hostname):
        if candidate in by_name:
            return by_name[candidate]
    return None


class BaseZoneDirectory(ABC):
    """
    Abstract base class for zone directories.

    Implementations raise ``ZoneUnavailableError`` when the provider
    cannot be reached or rejects a call.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Get the provider name.

        Returns
        -------
        str
            Provider name identifier.
        """
        ...

    @abstractmethod
    async def find_zone(self, hostname: str) -> str | None:
        """
        Find the hosted zone holding a hostname.

        Parameters
        ----------
        hostname : str
            The fully qualified hostname.

        Returns
        -------
        str | None
            The provider's zone id, or None if no hosted zone matches.
        """
        ...

    @abstractmethod
    async def upsert_a_record(self, zone_id: str, hostname: str, ip: str) -> ChangeKind:
        """
        Point the A-record of a hostname at an IPv4 address.

        This method should:
        1. Read the current A-record of ``hostname``
        2. If it already holds exactly ``ip``: return UNCHANGED
        3. Otherwise create or replace it in a single call and return CHANGED

        Parameters
        ----------
        zone_id : str
            The zone id returned by ``find_zone``.
        hostname : str
            The fully qualified hostname.
        ip : str
            The IPv4 address.

        Returns
        -------
        ChangeKind
            Whether the record changed.
        """
        ...
