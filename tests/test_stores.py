"""Tests for credential store backends."""

from __future__ import annotations

import boto3
import pytest
from botocore.stub import Stubber

from router_ddns.errors import StoreUnavailableError, UsernameTakenError
from router_ddns.models import CredentialRecord
from router_ddns.stores.dynamodb import DynamoDBCredentialStore
from router_ddns.stores.memory import InMemoryCredentialStore

TABLE = "ddns-test-UsersTable"

RECORD = CredentialRecord(
    username="home1",
    password_hash="$2b$04$abcdefghijklmnopqrstuu",
    domains=frozenset({"b.example.com", "a.example.com"}),
)

ITEM = {
    "username": {"S": "home1"},
    "password_hash": {"S": "$2b$04$abcdefghijklmnopqrstuu"},
    "domains": {"SS": ["a.example.com", "b.example.com"]},
}


@pytest.fixture
def dynamodb_client():
    return boto3.client(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(dynamodb_client):
    with Stubber(dynamodb_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def dynamodb_store(dynamodb_client):
    return DynamoDBCredentialStore(TABLE, client=dynamodb_client)


class TestInMemoryCredentialStore:
    """Tests for InMemoryCredentialStore."""

    @pytest.mark.asyncio
    async def test_get_missing(self):
        assert await InMemoryCredentialStore().get("home1") is None

    @pytest.mark.asyncio
    async def test_put_then_get(self):
        store = InMemoryCredentialStore()
        await store.put_if_absent(RECORD)
        assert await store.get("home1") == RECORD

    @pytest.mark.asyncio
    async def test_put_never_overwrites(self):
        store = InMemoryCredentialStore([RECORD])
        other = RECORD.model_copy(update={"password_hash": "other"})

        with pytest.raises(UsernameTakenError):
            await store.put_if_absent(other)
        assert await store.get("home1") == RECORD


class TestDynamoDBCredentialStore:
    """Tests for DynamoDBCredentialStore."""

    @pytest.mark.asyncio
    async def test_get(self, stubber, dynamodb_store):
        stubber.add_response(
            "get_item",
            {"Item": ITEM},
            {
                "TableName": TABLE,
                "Key": {"username": {"S": "home1"}},
                "ConsistentRead": True,
            },
        )
        assert await dynamodb_store.get("home1") == RECORD

    @pytest.mark.asyncio
    async def test_get_missing(self, stubber, dynamodb_store):
        stubber.add_response(
            "get_item",
            {},
            {
                "TableName": TABLE,
                "Key": {"username": {"S": "nobody"}},
                "ConsistentRead": True,
            },
        )
        assert await dynamodb_store.get("nobody") is None

    @pytest.mark.asyncio
    async def test_get_malformed_item(self, stubber, dynamodb_store):
        stubber.add_response(
            "get_item",
            {"Item": {"username": {"S": "home1"}}},
        )
        with pytest.raises(StoreUnavailableError):
            await dynamodb_store.get("home1")

    @pytest.mark.asyncio
    async def test_get_backend_error(self, stubber, dynamodb_store):
        stubber.add_client_error(
            "get_item",
            service_error_code="ProvisionedThroughputExceededException",
        )
        with pytest.raises(StoreUnavailableError):
            await dynamodb_store.get("home1")

    @pytest.mark.asyncio
    async def test_put_if_absent(self, stubber, dynamodb_store):
        stubber.add_response(
            "put_item",
            {},
            {
                "TableName": TABLE,
                "Item": ITEM,
                "ConditionExpression": "attribute_not_exists(username)",
            },
        )
        await dynamodb_store.put_if_absent(RECORD)

    @pytest.mark.asyncio
    async def test_put_existing(self, stubber, dynamodb_store):
        stubber.add_client_error(
            "put_item",
            service_error_code="ConditionalCheckFailedException",
        )
        with pytest.raises(UsernameTakenError):
            await dynamodb_store.put_if_absent(RECORD)

    @pytest.mark.asyncio
    async def test_put_backend_error(self, stubber, dynamodb_store):
        stubber.add_client_error(
            "put_item",
            service_error_code="InternalServerError",
            http_status_code=500,
        )
        with pytest.raises(StoreUnavailableError):
            await dynamodb_store.put_if_absent(RECORD)
