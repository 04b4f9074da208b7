"""
Data models for router-ddns.

This module defines the credential record stored for every router, the
per-hostname and overall reconciliation results, and the request/response
bodies of the HTTP API.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from starlette import status as st_status


class HostnameStatus(StrEnum):
    """
    Result of reconciling one requested hostname.

    Attributes
    ----------
    UPDATED : str
        The A-record was created or changed to the requested IP.
    UNCHANGED : str
        The A-record already pointed at the requested IP.
    UNAUTHORIZED : str
        The hostname is not in the caller's authorized domains.
    FAILED : str
        The DNS provider could not resolve a zone or apply the change.
    """

    UPDATED = "updated"
    UNCHANGED = "unchanged"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"


class OutcomeStatus(StrEnum):
    """
    Overall status of an update request, derived from its hostnames.

    Attributes
    ----------
    SUCCESS : str
        Every hostname ended ``updated`` or ``unchanged``.
    UNAUTHORIZED : str
        Every hostname was ``unauthorized``.
    FAILED : str
        Every hostname was ``failed``.
    PARTIAL : str
        Any other mix.
    """

    SUCCESS = "success"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"
    PARTIAL = "partial"


# HTTP status code for every overall outcome of /nic/update.
OUTCOME_HTTP_STATUS: dict[OutcomeStatus, int] = {
    OutcomeStatus.SUCCESS: st_status.HTTP_200_OK,
    OutcomeStatus.UNAUTHORIZED: st_status.HTTP_403_FORBIDDEN,
    OutcomeStatus.FAILED: st_status.HTTP_502_BAD_GATEWAY,
    OutcomeStatus.PARTIAL: st_status.HTTP_207_MULTI_STATUS,
}


class CredentialRecord(BaseModel):
    """
    Stored credential of one router account.

    Attributes
    ----------
    username : str
        Unique account name.
    password_hash : str
        bcrypt digest of the account password.
    domains : frozenset[str]
        Hostnames this account may update.
    """

    model_config = ConfigDict(frozen=True)

    username: str
    password_hash: str
    domains: frozenset[str]

    def has_domain(self, hostname: str) -> bool:
        """Return whether ``hostname`` is one of the authorized domains."""
        return hostname in self.domains


class HostnameResult(BaseModel):
    """
    Reconciliation result for a single hostname.

    Attributes
    ----------
    hostname : str
        The requested hostname.
    status : HostnameStatus
        What happened to it.
    message : str | None
        Failure detail, only set for ``failed``.
    """

    hostname: str
    status: HostnameStatus
    message: str | None = None


class UpdateOutcome(BaseModel):
    """
    Result of a whole update request.

    Attributes
    ----------
    ip : str
        The IPv4 address the hostnames were pointed at.
    results : list[HostnameResult]
        Per-hostname results, in request order.
    """

    ip: str
    results: list[HostnameResult] = Field(default_factory=list)

    @property
    def status(self) -> OutcomeStatus:
        """
        Derive the overall status from the per-hostname results.

        Returns
        -------
        OutcomeStatus
            The overall status.
        """
        statuses = {result.status for result in self.results}
        if statuses <= {HostnameStatus.UPDATED, HostnameStatus.UNCHANGED}:
            return OutcomeStatus.SUCCESS
        if statuses == {HostnameStatus.UNAUTHORIZED}:
            return OutcomeStatus.UNAUTHORIZED
        if statuses == {HostnameStatus.FAILED}:
            return OutcomeStatus.FAILED
        return OutcomeStatus.PARTIAL

    def get(self, hostname: str) -> HostnameStatus | None:
        """Return the status recorded for ``hostname``, if any."""
        for result in self.results:
            if result.hostname == hostname:
                return result.status
        return None


class CreateUserRequest(BaseModel):
    """
    Body of ``POST /user``.

    Field constraints are checked by the provisioner so that the error
    names the failed constraint.
    """

    username: str
    password: str
    domains: list[str]


class ErrorResponse(BaseModel):
    """
    Unified error body.

    Attributes
    ----------
    status : Literal["error"]
        Always ``"error"``.
    code : int
        HTTP status code.
    message : str
        Human-readable message.
    error : str | None
        Machine-readable error code (e.g. ``"username_taken"``).
    """

    status: Literal["error"] = "error"
    code: int
    message: str
    error: str | None = None


class NicUpdateResponse(BaseModel):
    """
    Body of ``GET /nic/update``.

    Routers that cannot parse JSON can check for success by looking for
    ``"status":"success"`` in the response body.

    Attributes
    ----------
    status : Literal["success", "partial", "error"]
        Overall status.
    code : int
        HTTP status code.
    message : str
        Human-readable summary.
    ip : str | None
        The requested IP (absent for request-level errors).
    results : list[HostnameResult]
        Per-hostname results.
    """

    status: Literal["success", "partial", "error"]
    code: int
    message: str
    ip: str | None = None
    results: list[HostnameResult] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: UpdateOutcome) -> NicUpdateResponse:
        """
        Build the response for a reconciled request.

        Parameters
        ----------
        outcome : UpdateOutcome
            The reconciliation outcome.

        Returns
        -------
        NicUpdateResponse
            The response to send.
        """
        overall = outcome.status
        counts = {
            status: sum(1 for r in outcome.results if r.status == status)
            for status in HostnameStatus
        }
        summary = ", ".join(f"{n} {status}" for status, n in counts.items() if n)

        if overall == OutcomeStatus.SUCCESS:
            body_status: Literal["success", "partial", "error"] = "success"
        elif overall == OutcomeStatus.PARTIAL:
            body_status = "partial"
        else:
            body_status = "error"

        return cls(
            status=body_status,
            code=OUTCOME_HTTP_STATUS[overall],
            message=summary,
            ip=outcome.ip,
            results=outcome.results,
        )
