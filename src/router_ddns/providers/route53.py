"""
Amazon Route 53 zone directory.

This module uses boto3 to find public hosted zones and upsert A-records.
boto3 calls block, so they run in the starlette threadpool.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from router_ddns.errors import ZoneUnavailableError
from router_ddns.providers.base import (
    BaseZoneDirectory,
    ChangeKind,
    match_zone,
    normalize_name,
)

if TYPE_CHECKING:
    from typing import Any, Final


# Default TTL of upserted records, in seconds
DEFAULT_TTL: Final[int] = 300

# How long a listing of the hosted zones is reused, in seconds
DEFAULT_ZONE_CACHE_SECONDS: Final[float] = 60.0


logger = logging.getLogger(__name__)


class Route53ZoneDirectory(BaseZoneDirectory):
    """
    Route 53 zone directory.

    Private hosted zones are ignored. Zone ids are the ``Id`` values
    returned by Route 53 (e.g. ``"/hostedzone/Z123"``).
    """

    def __init__(
        self,
        *,
        ttl: int = DEFAULT_TTL,
        region: str | None = None,
        client: Any = None,
        zone_cache_seconds: float = DEFAULT_ZONE_CACHE_SECONDS,
    ) -> None:
        """
        Initialize the directory.

        Parameters
        ----------
        ttl : int, optional
            TTL of upserted records.
        region : str | None, optional
            AWS region, or None for the boto3 default.
        client : Any, optional
            A pre-built ``route53`` client (used by tests).
        zone_cache_seconds : float, optional
            How long a listing of the hosted zones is reused. A request
            naming several hostnames lists the zones once.
        """
        self.ttl = ttl
        self.zone_cache_seconds = zone_cache_seconds
        self._zone_cache: tuple[float, list[tuple[str, str]]] | None = None
        self._client = client or boto3.client("route53", region_name=region)

    @property
    def name(self) -> str:
        """Get the provider name."""
        return "route53"

    async def find_zone(self, hostname: str) -> str | None:
        """
        Find the public hosted zone holding a hostname.

        Parameters
        ----------
        hostname : str
            The fully qualified hostname.

        Returns
        -------
        str | None
            The hosted zone id, or None.

        Raises
        ------
        ZoneUnavailableError
            If the hosted zones could not be listed.
        """
        try:
            zones = await self._public_zones()
        except (BotoCoreError, ClientError) as e:
            logger.error("[route53] ListHostedZones failed: '%s'", e)  # noqa: TRY400
            msg = f"Failed to list hosted zones: {e}"
            raise ZoneUnavailableError(msg) from e

        zone_id = match_zone(hostname, zones)
        logger.debug("[route53] Zone for %s: %s", hostname, zone_id)
        return zone_id

    async def upsert_a_record(self, zone_id: str, hostname: str, ip: str) -> ChangeKind:
        """
        Point the A-record of a hostname at an IPv4 address.

        Parameters
        ----------
        zone_id : str
            The hosted zone id.
        hostname : str
            The fully qualified hostname.
        ip : str
            The IPv4 address.

        Returns
        -------
        ChangeKind
            Whether the record changed.

        Raises
        ------
        ZoneUnavailableError
            If Route 53 could not be reached or rejected the change.
        """
        try:
            current = await run_in_threadpool(self._get_a_values, zone_id, hostname)
            if current == [ip]:
                return ChangeKind.UNCHANGED

            response = await run_in_threadpool(
                self._client.change_resource_record_sets,
                HostedZoneId=zone_id,
                ChangeBatch={
                    "Comment": f"router-ddns update of {hostname}",
                    "Changes": [
                        {
                            "Action": "UPSERT",
                            "ResourceRecordSet": {
                                "Name": hostname,
                                "Type": "A",
                                "TTL": self.ttl,
                                "ResourceRecords": [{"Value": ip}],
                            },
                        },
                    ],
                },
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("[route53] Upsert of %s failed: '%s'", hostname, e)  # noqa: TRY400
            msg = f"Failed to upsert record {hostname}: {e}"
            raise ZoneUnavailableError(msg) from e

        logger.debug(
            "[route53] UPSERT %s A %s -> %s",
            hostname,
            ip,
            response.get("ChangeInfo", {}).get("Status"),
        )
        return ChangeKind.CHANGED

    async def _public_zones(self) -> list[tuple[str, str]]:
        """Return the public hosted zones, listing them when the cache is stale."""
        now = time.monotonic()
        if self._zone_cache is not None and now - self._zone_cache[0] < self.zone_cache_seconds:
            return self._zone_cache[1]

        zones = await run_in_threadpool(self._list_public_zones)
        self._zone_cache = (now, zones)
        return zones

    def _list_public_zones(self) -> list[tuple[str, str]]:
        """
        List all public hosted zones.

        Returns
        -------
        list[tuple[str, str]]
            ``(zone_name, zone_id)`` pairs, names without the trailing dot.
        """
        zones: list[tuple[str, str]] = []
        paginator = self._client.get_paginator("list_hosted_zones")
        for page in paginator.paginate():
            for zone in page.get("HostedZones", []):
                if zone.get("Config", {}).get("PrivateZone", False):
                    continue
                zones.append((normalize_name(zone["Name"]), zone["Id"]))
        return zones

    def _get_a_values(self, zone_id: str, hostname: str) -> list[str] | None:
        """
        Read the current A-record values of a hostname.

        Returns
        -------
        list[str] | None
            The record values, or None if no A-record exists.
        """
        response = self._client.list_resource_record_sets(
            HostedZoneId=zone_id,
            StartRecordName=hostname,
            StartRecordType="A",
            MaxItems="1",
        )
        for record_set in response.get("ResourceRecordSets", []):
            if (
                normalize_name(record_set["Name"]) == normalize_name(hostname)
                and record_set["Type"] == "A"
            ):
                return [r["Value"] for r in record_set.get("ResourceRecords", [])]
        return None
