"""
CloudFlare zone directory.

This module implements the CloudFlare DNS API v4 for finding zones and
upserting A-records. Only API Token authentication is supported (not
Global API Key).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx
from starlette import status as st_status

from router_ddns.errors import ZoneUnavailableError
from router_ddns.providers.base import (
    BaseZoneDirectory,
    ChangeKind,
    candidate_zone_names,
)

if TYPE_CHECKING:
    from typing import Any, Final


# CloudFlare API base URL
CF_API_BASE: Final[str] = "https://api.cloudflare.com/client/v4"

# HTTP timeout in seconds
HTTP_TIMEOUT: Final[float] = 30.0

# Default TTL of created records, in seconds
DEFAULT_TTL: Final[int] = 300


logger = logging.getLogger(__name__)


class CloudFlareZoneDirectory(BaseZoneDirectory):
    """
    CloudFlare zone directory.

    Uses CloudFlare API v4 with API Token authentication. Zone ids are
    CloudFlare zone identifiers.
    """

    def __init__(
        self,
        token: str,
        *,
        ttl: int = DEFAULT_TTL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the directory.

        Parameters
        ----------
        token : str
            CloudFlare API Token with DNS edit permission.
        ttl : int, optional
            TTL of created or updated records.
        transport : httpx.AsyncBaseTransport | None, optional
            Custom transport (used by tests).
        """
        self.ttl = ttl
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self._transport = transport

    @property
    def name(self) -> str:
        """Get the provider name."""
        return "cloudflare"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=CF_API_BASE,
            headers=self._headers,
            timeout=HTTP_TIMEOUT,
            transport=self._transport,
        )

    async def find_zone(self, hostname: str) -> str | None:
        """
        Find the zone holding a hostname.

        CloudFlare only looks zones up by exact name, so every label-aligned
        suffix of the hostname is tried, longest first.

        Parameters
        ----------
        hostname : str
            The fully qualified hostname.

        Returns
        -------
        str | None
            The zone id, or None if no zone matches.
        """
        async with self._client() as client:
            for candidate in candidate_zone_names(hostname):
                zones = await self._request(
                    client, "GET", "/zones", list, params={"name": candidate},
                )
                if zones:
                    zone_id = str(zones[0]["id"])
                    logger.debug("[cloudflare] Zone ID for %s: %s", hostname, zone_id)
                    return zone_id
        return None

    async def upsert_a_record(self, zone_id: str, hostname: str, ip: str) -> ChangeKind:
        """
        Create or update the A-record of a hostname.

        Parameters
        ----------
        zone_id : str
            The zone id.
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
            If the API call failed or several A-records exist for the name.
        """
        path = f"/zones/{zone_id}/dns_records"

        async with self._client() as client:
            records = await self._request(
                client,
                "GET",
                path,
                list,
                params={"name": hostname, "type": "A"},
            )

            if len(records) == 0:
                await self._request(
                    client,
                    "POST",
                    path,
                    dict,
                    json={
                        "type": "A",
                        "name": hostname,
                        "content": ip,
                        "ttl": self.ttl,
                        "proxied": False,
                    },
                )
                logger.debug("[cloudflare] Created %s A %s", hostname, ip)
                return ChangeKind.CHANGED

            if len(records) > 1:
                msg = (
                    f"Multiple records ({len(records)}) found for {hostname} A. "
                    "Please manually clean up duplicate records."
                )
                raise ZoneUnavailableError(msg)

            existing = records[0]
            if existing.get("content") == ip:
                return ChangeKind.UNCHANGED

            await self._request(
                client,
                "PATCH",
                f"{path}/{existing['id']}",
                dict,
                json={
                    "type": "A",
                    "name": existing.get("name", hostname),
                    "content": ip,
                    "ttl": self.ttl,
                    "proxied": existing.get("proxied", False),
                },
            )
            logger.debug(
                "[cloudflare] Updated %s A %s -> %s",
                hostname,
                existing.get("content"),
                ip,
            )
            return ChangeKind.CHANGED

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        result_type: type,
        **kwargs: Any,
    ) -> Any:
        """
        Send an API request and unwrap its ``result``.

        Parameters
        ----------
        client : httpx.AsyncClient
            HTTP client.
        method : str
            HTTP method.
        path : str
            Path below the API base URL.
        result_type : type
            Expected type of ``result`` (``list`` for lookups, ``dict`` for
            writes).
        **kwargs : Any
            Extra arguments for ``client.request``.

        Returns
        -------
        Any
            The ``result`` member of the response.

        Raises
        ------
        ZoneUnavailableError
            On network errors, non-200 responses, ``success: false`` or a
            body that does not have the expected shape.
        """
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("[cloudflare] Network request failed: '%s'", e)  # noqa: TRY400
            msg = f"Request error: {e}"
            raise ZoneUnavailableError(msg) from e

        logger.debug("[cloudflare] %s %s -> %d", method, path, response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code != st_status.HTTP_200_OK or not data.get("success"):
            errors = data.get("errors")
            error_msg = "Unknown error"
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                error_msg = errors[0].get("message", error_msg)
            logger.error("[cloudflare] %s %s failed: '%s'", method, path, response.text)
            msg = f"CloudFlare API error: {error_msg}"
            raise ZoneUnavailableError(msg)

        result = data.get("result")
        if not isinstance(result, result_type):
            logger.error("[cloudflare] %s %s returned an unexpected result: %r", method, path, result)
            msg = f"CloudFlare API error: unexpected result for {method} {path}"
            raise ZoneUnavailableError(msg)

        return result
