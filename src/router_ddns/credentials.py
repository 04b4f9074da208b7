"""
Transport credential encoding and password hashing.

Routers authenticate with HTTP Basic credentials, ``base64(username:secret)``.
The separator of that encoding is exported as ``CREDENTIAL_SEPARATOR`` so
that account provisioning can refuse usernames that could never be decoded
again.

Passwords are stored as bcrypt digests. bcrypt only looks at the first
72 bytes of its input, so passwords are pre-hashed with SHA-256 first.
"""

from __future__ import annotations

import base64
import functools
import hashlib
from typing import TYPE_CHECKING

import bcrypt

from router_ddns.errors import UnauthorizedError

if TYPE_CHECKING:
    from typing import Final


# Scheme prefix of the Authorization header
BASIC_SCHEME: Final[str] = "basic"

# Separator between username and secret inside a Basic credential
CREDENTIAL_SEPARATOR: Final[str] = ":"


def encode_basic_credential(username: str, secret: str) -> str:
    """
    Encode a username/secret pair as an ``Authorization`` header value.

    Parameters
    ----------
    username : str
        Account name.
    secret : str
        Account password.

    Returns
    -------
    str
        The header value, e.g. ``"Basic dXNlcjpwYXNz"``.
    """
    raw = f"{username}{CREDENTIAL_SEPARATOR}{secret}".encode()
    return f"Basic {base64.b64encode(raw).decode('ascii')}"


def parse_basic_credential(header_value: str | None) -> tuple[str, str]:
    """
    Decode a Basic ``Authorization`` header value.

    Parameters
    ----------
    header_value : str | None
        The raw header value.

    Returns
    -------
    tuple[str, str]
        A tuple of ``(username, secret)``.

    Raises
    ------
    UnauthorizedError
        If the header is missing or malformed in any way.
    """
    if not header_value:
        raise UnauthorizedError

    scheme, _, encoded = header_value.strip().partition(" ")
    if scheme.lower() != BASIC_SCHEME or not encoded.strip():
        raise UnauthorizedError

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except ValueError as e:
        raise UnauthorizedError from e

    username, separator, secret = decoded.partition(CREDENTIAL_SEPARATOR)
    if not separator or not username:
        raise UnauthorizedError

    return username, secret


def _prehash(password: str) -> bytes:
    return hashlib.sha256(password.encode("utf-8")).hexdigest().encode("ascii")


def hash_password(password: str) -> str:
    """
    Hash a password for storage.

    Parameters
    ----------
    password : str
        The plaintext password.

    Returns
    -------
    str
        A salted bcrypt digest.
    """
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a password against a stored digest.

    Parameters
    ----------
    password : str
        The plaintext password.
    password_hash : str
        The stored bcrypt digest.

    Returns
    -------
    bool
        True if the password matches. A corrupt digest never matches.
    """
    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return False


@functools.cache
def _dummy_hash() -> str:
    return hash_password("router-ddns-dummy-password")


def burn_password_check(password: str) -> None:
    """
    Spend the same work as ``verify_password`` without a stored digest.

    Used for unknown usernames so that they cost as much as a wrong
    password.
    """
    verify_password(password, _dummy_hash())
