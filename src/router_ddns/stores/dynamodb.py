"""
Amazon DynamoDB credential store.

Records live in a table keyed by ``username`` (string) with the attributes
``password_hash`` (string) and ``domains`` (string set). Account creation
uses a conditional put so that concurrent creations of one username resolve
to exactly one winner.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from router_ddns.errors import StoreUnavailableError, UsernameTakenError
from router_ddns.models import CredentialRecord
from router_ddns.stores.base import BaseCredentialStore

if TYPE_CHECKING:
    from typing import Any, Final


# Error code returned when the conditional put finds an existing item
CONDITIONAL_CHECK_FAILED: Final[str] = "ConditionalCheckFailedException"


logger = logging.getLogger(__name__)


class DynamoDBCredentialStore(BaseCredentialStore):
    """
    Credential store backed by a DynamoDB table.

    boto3 calls block, so they run in the starlette threadpool.
    """

    def __init__(
        self,
        table_name: str,
        *,
        region: str | None = None,
        client: Any = None,
    ) -> None:
        """
        Initialize the store.

        Parameters
        ----------
        table_name : str
            Name of the users table.
        region : str | None, optional
            AWS region, or None for the boto3 default.
        client : Any, optional
            A pre-built ``dynamodb`` client (used by tests).
        """
        self.table_name = table_name
        self._client = client or boto3.client("dynamodb", region_name=region)

    @property
    def name(self) -> str:
        """Get the store backend name."""
        return "dynamodb"

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

        Raises
        ------
        StoreUnavailableError
            If DynamoDB could not be reached or returned a malformed item.
        """
        try:
            response = await run_in_threadpool(
                self._client.get_item,
                TableName=self.table_name,
                Key={"username": {"S": username}},
                ConsistentRead=True,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("[dynamodb] GetItem failed: '%s'", e)  # noqa: TRY400
            msg = "Credential store unavailable"
            raise StoreUnavailableError(msg) from e

        item = response.get("Item")
        if item is None:
            return None
        return self._item_to_record(item)

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
            If the conditional check found an existing item.
        StoreUnavailableError
            If DynamoDB could not be reached.
        """
        try:
            await run_in_threadpool(
                self._client.put_item,
                TableName=self.table_name,
                Item=self._record_to_item(record),
                ConditionExpression="attribute_not_exists(username)",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED:
                msg = f'Username "{record.username}" already exists'
                raise UsernameTakenError(msg) from e
            logger.error("[dynamodb] PutItem failed: '%s'", e)  # noqa: TRY400
            msg = "Credential store unavailable"
            raise StoreUnavailableError(msg) from e
        except BotoCoreError as e:
            logger.error("[dynamodb] PutItem failed: '%s'", e)  # noqa: TRY400
            msg = "Credential store unavailable"
            raise StoreUnavailableError(msg) from e

        logger.debug("[dynamodb] PutItem %s -> ok", record.username)

    @staticmethod
    def _record_to_item(record: CredentialRecord) -> dict[str, Any]:
        return {
            "username": {"S": record.username},
            "password_hash": {"S": record.password_hash},
            "domains": {"SS": sorted(record.domains)},
        }

    @staticmethod
    def _item_to_record(item: dict[str, Any]) -> CredentialRecord:
        try:
            return CredentialRecord(
                username=item["username"]["S"],
                password_hash=item["password_hash"]["S"],
                domains=frozenset(item["domains"]["SS"]),
            )
        except KeyError as e:
            msg = f"Malformed credential item: missing {e}"
            raise StoreUnavailableError(msg) from e
