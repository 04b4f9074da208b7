"""
Base class for credential stores.

A credential store maps usernames to credential records. It only ever
reads a record or inserts a new one; records are never overwritten.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from router_ddns.models import CredentialRecord


class BaseCredentialStore(ABC):
    """
    Abstract base class for credential stores.

    Implementations raise ``StoreUnavailableError`` for backend failures.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Get the store backend name.

        Returns
        -------
        str
            Backend name identifier.
        """
        ...

    @abstractmethod
    async def get(self, username: str) -> CredentialRecord | None:
        """
        Fetch the credential record of a username.

        Parameters
        ----------
        username : str
            The account name.

        Returns
        -------
        CredentialRecord | None
            The record, or None if no account exists.
        """
        ...

    @abstractmethod
    async def put_if_absent(self, record: CredentialRecord) -> None:
        """
        Insert a record unless one already exists for its username.

        Parameters
        ----------
        record : CredentialRecord
            The record to insert.

        Raises
        ------
        UsernameTakenError
            If a record already exists for ``record.username``.
        StoreUnavailableError
            If the backend could not be reached.
        """
        ...
