"""
Error taxonomy for router-ddns.

Every error raised by the core carries a machine-readable ``code`` and the
HTTP status the server should answer with, so the FastAPI layer can render
them through a single exception handler.
"""

from __future__ import annotations

from starlette import status as st_status


class DDNSError(Exception):
    """
    Base class for all router-ddns errors.

    Attributes
    ----------
    code : str
        Machine-readable error code.
    status_code : int
        HTTP status code used when the error reaches the client.
    message : str
        Human-readable error message.
    """

    code: str = "error"
    status_code: int = st_status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        """
        Initialize the error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class BadRequestError(DDNSError):
    """Malformed client input. Never retried automatically."""

    code = "bad_request"
    status_code = st_status.HTTP_400_BAD_REQUEST


class InvalidUsernameError(BadRequestError):
    """Username is empty, too long, or contains the credential separator."""

    code = "invalid_username"


class InvalidPasswordError(BadRequestError):
    """Password is shorter than the minimum length."""

    code = "invalid_password"


class InvalidDomainsError(BadRequestError):
    """Domain list is empty or contains empty entries."""

    code = "invalid_domains"


class UnauthorizedError(DDNSError):
    """
    Bad or unknown credential.

    The message is the same whether the username is unknown or the
    secret is wrong.
    """

    code = "unauthorized"
    status_code = st_status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class UsernameTakenError(DDNSError):
    """A credential record already exists for the username."""

    code = "username_taken"
    status_code = st_status.HTTP_409_CONFLICT


class StoreUnavailableError(DDNSError):
    """Transient credential store failure. Safe for the caller to retry."""

    code = "store_unavailable"
    status_code = st_status.HTTP_503_SERVICE_UNAVAILABLE


class ZoneUnavailableError(DDNSError):
    """Transient DNS provider failure."""

    code = "zone_unavailable"
    status_code = st_status.HTTP_502_BAD_GATEWAY
