"""
Update reconciliation.

Authenticates a router, checks the requested hostnames against the
router's authorized domains, and points the A-record of every authorized
hostname at the reported IP. Each hostname is reconciled independently:
a provider failure on one of them never stops the others.
"""

from __future__ import annotations

import ipaddress
import logging
import time
from typing import TYPE_CHECKING

from starlette.concurrency import run_in_threadpool

from router_ddns.credentials import (
    burn_password_check,
    parse_basic_credential,
    verify_password,
)
from router_ddns.errors import BadRequestError, UnauthorizedError, ZoneUnavailableError
from router_ddns.models import HostnameResult, HostnameStatus, UpdateOutcome
from router_ddns.providers.base import ChangeKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from router_ddns.models import CredentialRecord
    from router_ddns.providers.base import BaseZoneDirectory
    from router_ddns.stores.base import BaseCredentialStore


logger = logging.getLogger(__name__)


def validate_hostnames(hostnames: Sequence[str]) -> None:
    """
    Reject empty, blank or duplicated hostname lists.

    Raises
    ------
    BadRequestError
        If the list is empty, holds an empty hostname, or names a
        hostname more than once.
    """
    if not hostnames:
        msg = "No hostname given"
        raise BadRequestError(msg)

    seen: set[str] = set()
    for hostname in hostnames:
        if not hostname:
            msg = "Empty hostname given"
            raise BadRequestError(msg)
        if hostname in seen:
            msg = f'Duplicate hostname: "{hostname}"'
            raise BadRequestError(msg)
        seen.add(hostname)


def validate_ip(ip: str | None) -> str:
    """
    Parse an IPv4 dotted-quad address.

    Returns
    -------
    str
        The normalized address.

    Raises
    ------
    BadRequestError
        If ``ip`` is missing or not an IPv4 address.
    """
    if not ip:
        msg = "No IP address given"
        raise BadRequestError(msg)
    try:
        return str(ipaddress.IPv4Address(ip))
    except ValueError as e:
        msg = f'Invalid IPv4 address: "{ip}"'
        raise BadRequestError(msg) from e


class UpdateReconciler:
    """
    Reconciles router update requests against DNS.

    Parameters
    ----------
    store : BaseCredentialStore
        Source of credential records.
    zones : BaseZoneDirectory
        DNS provider holding the records.
    """

    def __init__(self, store: BaseCredentialStore, zones: BaseZoneDirectory) -> None:
        self.store = store
        self.zones = zones

    async def authenticate(self, credential: str | None) -> CredentialRecord:
        """
        Resolve a Basic credential to its credential record.

        Parameters
        ----------
        credential : str | None
            The ``Authorization`` header value.

        Returns
        -------
        CredentialRecord
            The caller's record.

        Raises
        ------
        UnauthorizedError
            If the credential is malformed, the username unknown or the
            secret wrong. All three look the same to the caller.
        StoreUnavailableError
            If the store could not be reached.
        """
        # Malformed credentials fail before any store lookup
        username, secret = parse_basic_credential(credential)

        record = await self.store.get(username)
        if record is None:
            await run_in_threadpool(burn_password_check, secret)
            logger.info("[auth] rejected username=%s", username)
            raise UnauthorizedError

        if not await run_in_threadpool(verify_password, secret, record.password_hash):
            logger.info("[auth] rejected username=%s", username)
            raise UnauthorizedError

        return record

    async def update(
        self,
        credential: str | None,
        hostnames: Sequence[str],
        ip: str | None,
    ) -> UpdateOutcome:
        """
        Process an update request.

        Parameters
        ----------
        credential : str | None
            The ``Authorization`` header value.
        hostnames : Sequence[str]
            Requested hostnames, in request order.
        ip : str | None
            The IPv4 address to point them at.

        Returns
        -------
        UpdateOutcome
            Per-hostname results and the derived overall status.

        Raises
        ------
        UnauthorizedError
            If authentication fails.
        BadRequestError
            If the hostname list or the IP is malformed.
        StoreUnavailableError
            If the store could not be reached.
        """
        start_time = time.monotonic()

        record = await self.authenticate(credential)
        validate_hostnames(hostnames)
        address = validate_ip(ip)

        logger.info(
            "[request] username=%s hostnames=%s ip=%s",
            record.username,
            ",".join(hostnames),
            address,
        )

        outcome = UpdateOutcome(ip=address)
        for hostname in hostnames:
            if not record.has_domain(hostname):
                outcome.results.append(
                    HostnameResult(hostname=hostname, status=HostnameStatus.UNAUTHORIZED),
                )
                continue
            outcome.results.append(await self._reconcile(hostname, address))

        logger.info(
            "[response] username=%s status=%s duration=%.2fs",
            record.username,
            outcome.status,
            time.monotonic() - start_time,
        )
        return outcome

    async def _reconcile(self, hostname: str, ip: str) -> HostnameResult:
        """Point one authorized hostname at ``ip``."""
        try:
            zone_id = await self.zones.find_zone(hostname)
            if zone_id is None:
                logger.warning("[%s] No hosted zone for %s", self.zones.name, hostname)
                return HostnameResult(
                    hostname=hostname,
                    status=HostnameStatus.FAILED,
                    message="No hosted zone found",
                )
            change = await self.zones.upsert_a_record(zone_id, hostname, ip)
        except ZoneUnavailableError as e:
            logger.warning("[%s] %s failed: %s", self.zones.name, hostname, e.message)
            return HostnameResult(
                hostname=hostname,
                status=HostnameStatus.FAILED,
                message=e.message,
            )
        except Exception as e:
            # A failure on one hostname must not abort the others
            logger.exception("[%s] %s failed unexpectedly", self.zones.name, hostname)
            return HostnameResult(
                hostname=hostname,
                status=HostnameStatus.FAILED,
                message=f"DNS provider error: {e}",
            )

        if change == ChangeKind.UNCHANGED:
            return HostnameResult(hostname=hostname, status=HostnameStatus.UNCHANGED)
        return HostnameResult(hostname=hostname, status=HostnameStatus.UPDATED)
