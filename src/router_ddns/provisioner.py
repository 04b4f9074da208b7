"""
Credential provisioning.

Creates router accounts. Account creation is the only write against the
credential store, and it never overwrites an existing account.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.concurrency import run_in_threadpool

from router_ddns.credentials import CREDENTIAL_SEPARATOR, hash_password
from router_ddns.errors import (
    BadRequestError,
    InvalidDomainsError,
    InvalidPasswordError,
    InvalidUsernameError,
)
from router_ddns.models import CredentialRecord

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Final

    from router_ddns.stores.base import BaseCredentialStore


# Username limits
USERNAME_MAX_LENGTH: Final[int] = 7

# Password limits
PASSWORD_MIN_LENGTH: Final[int] = 8


logger = logging.getLogger(__name__)


def validate_new_account(
    username: str,
    password: str,
    domains: Iterable[str],
) -> list[BadRequestError]:
    """
    Check the constraints of a new account.

    Parameters
    ----------
    username : str
        Requested account name.
    password : str
        Requested password.
    domains : Iterable[str]
        Hostnames the account may update.

    Returns
    -------
    list[BadRequestError]
        Every failed constraint, in the order username, password, domains.
        Empty when the account is valid.
    """
    errors: list[BadRequestError] = []

    if not username:
        errors.append(InvalidUsernameError("username is empty"))
    else:
        if len(username) > USERNAME_MAX_LENGTH:
            errors.append(
                InvalidUsernameError(
                    f"username is longer than {USERNAME_MAX_LENGTH} characters",
                ),
            )
        # The separator splits Basic credentials, so such an account could
        # never authenticate.
        if CREDENTIAL_SEPARATOR in username:
            errors.append(
                InvalidUsernameError(
                    f'username contains the credential separator "{CREDENTIAL_SEPARATOR}"',
                ),
            )

    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(
            InvalidPasswordError(
                f"password is shorter than {PASSWORD_MIN_LENGTH} characters",
            ),
        )

    domain_list = list(domains)
    if not domain_list:
        errors.append(InvalidDomainsError("domains is empty"))
    elif any(not domain for domain in domain_list):
        errors.append(InvalidDomainsError("domains contains an empty hostname"))

    return errors


class CredentialProvisioner:
    """
    Creates credential records.

    The administrative secret guarding account creation is checked before
    this class is reached; it is not a concern of ``create``.
    """

    def __init__(self, store: BaseCredentialStore) -> None:
        self.store = store

    async def create(
        self,
        username: str,
        password: str,
        domains: Iterable[str],
    ) -> CredentialRecord:
        """
        Create a new account.

        Parameters
        ----------
        username : str
            Account name.
        password : str
            Plaintext password, hashed before storage.
        domains : Iterable[str]
            Hostnames the account may update.

        Returns
        -------
        CredentialRecord
            The stored record.

        Raises
        ------
        InvalidUsernameError, InvalidPasswordError, InvalidDomainsError
            If a constraint fails. The message lists every failed
            constraint; the type is that of the first one.
        UsernameTakenError
            If the username already exists. The existing record is kept.
        StoreUnavailableError
            If the store could not be reached. Nothing was written.
        """
        domain_list = list(domains)
        errors = validate_new_account(username, password, domain_list)
        if errors:
            message = "; ".join(e.message for e in errors)
            logger.info("[create] rejected username=%s reason=%s", username, message)
            raise type(errors[0])(message)

        record = CredentialRecord(
            username=username,
            password_hash=await run_in_threadpool(hash_password, password),
            domains=frozenset(domain_list),
        )
        await self.store.put_if_absent(record)

        logger.info(
            "[create] username=%s domains=%s",
            username,
            ",".join(sorted(record.domains)),
        )
        return record
