"""In-memory credential store, for tests and local runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from router_ddns.errors import UsernameTakenError
from router_ddns.stores.base import BaseCredentialStore

if TYPE_CHECKING:
    from collections.abc import Iterable

    from router_ddns.models import CredentialRecord


class InMemoryCredentialStore(BaseCredentialStore):
    """Credential store backed by a dict. Contents are lost on restart."""

    def __init__(self, records: Iterable[CredentialRecord] = ()) -> None:
        self._records: dict[str, CredentialRecord] = {
            record.username: record for record in records
        }

    @property
    def name(self) -> str:
        """Get the store backend name."""
        return "memory"

    async def get(self, username: str) -> CredentialRecord | None:
        """Fetch the credential record of a username."""
        return self._records.get(username)

    async def put_if_absent(self, record: CredentialRecord) -> None:
        """Insert a record unless one already exists for its username."""
        # No await between the check and the insert
        if record.username in self._records:
            msg = f'Username "{record.username}" already exists'
            raise UsernameTakenError(msg)
        self._records[record.username] = record
