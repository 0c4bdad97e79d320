"""Pytest configuration and fixtures for paylink tests.

This module provides reusable fixtures for testing:
- DynamoDB and SSM mocking with moto
- Settings and signer for a test merchant
- Signed PayU callback payload factories
- Wired services over in-memory stores and a mocked gateway
"""

import datetime as dt
import os
from collections.abc import Callable
from decimal import Decimal
from typing import Any, Generator
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

from paylink.config import Settings
from paylink.models import GatewayHandoff, StoreBackend, Transaction
from paylink.services import (
    DynamoDBService,
    HashSigner,
    InMemoryCustomerStore,
    InMemoryTransactionStore,
    InMemoryWebhookStore,
    PayUClient,
    Services,
    Stores,
    build_services,
)

# === Environment Setup ===

os.environ.setdefault("AWS_DEFAULT_REGION", "ap-south-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-paylink")

if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

TEST_KEY = "gtKFFx"
TEST_SALT = "eCwWELxi"
TEST_TABLE_PREFIX = "test-paylink"
FRONTEND = "https://shop.example.com"
PUBLIC = "https://api.example.com"


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached settings, services and AWS clients around each test."""
    from paylink_api.dependencies import reset_services

    reset_services()
    yield
    reset_services()


# === AWS Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "ap-south-1"


def _create_tables(client: Any) -> None:
    client.create_table(
        TableName=f"{TEST_TABLE_PREFIX}-transactions",
        KeySchema=[{"AttributeName": "reference_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "reference_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    client.create_table(
        TableName=f"{TEST_TABLE_PREFIX}-customers",
        KeySchema=[{"AttributeName": "customer_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "customer_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    client.create_table(
        TableName=f"{TEST_TABLE_PREFIX}-webhook-records",
        KeySchema=[{"AttributeName": "record_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "record_id", "AttributeType": "S"},
            {"AttributeName": "reference_id", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "reference_id-index",
                "KeySchema": [{"AttributeName": "reference_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def dynamodb_tables(aws_credentials: None) -> Generator[DynamoDBService, None, None]:
    """Mocked DynamoDB with the transactions, customers and webhook tables."""
    with mock_aws():
        _create_tables(boto3.client("dynamodb", region_name="ap-south-1"))
        yield DynamoDBService(TEST_TABLE_PREFIX)


# === Settings Fixtures ===


@pytest.fixture
def settings() -> Settings:
    """Test-mode settings with credentials and in-memory stores."""
    return Settings(
        merchant_key=TEST_KEY,
        merchant_salt=TEST_SALT,
        public_base_url=PUBLIC,
        frontend_base_url=FRONTEND,
        store_backend=StoreBackend.MEMORY,
        table_prefix=TEST_TABLE_PREFIX,
    )


@pytest.fixture
def signer() -> HashSigner:
    return HashSigner(TEST_KEY, TEST_SALT)


# === Callback Payload Fixtures ===


@pytest.fixture
def sign_callback(signer: HashSigner) -> Callable[..., dict[str, str]]:
    """Factory for PayU callback forms carrying a valid response hash.

    Usage:
        payload = sign_callback(txnid="TXN1", status="failure", mihpayid="G2")
    """

    def _build(**overrides: str) -> dict[str, str]:
        payload = {
            "key": TEST_KEY,
            "txnid": "TXN-TEST-1",
            "mihpayid": "G1",
            "status": "success",
            "amount": "100.00",
            "productinfo": "Payment for AI chat service for 100.00 INR",
            "firstname": "Jane",
            "email": "jane@x.com",
            "phone": "9999999999",
            "udf1": "",
            "udf2": "",
            "udf3": "",
            "udf4": "",
            "udf5": "",
            "mode": "UPI",
            "bank_ref_num": "BRN123",
            "error": "E000",
            "error_Message": "No Error",
        }
        payload.update(overrides)
        payload["hash"] = signer.callback_signature(payload)
        return payload

    return _build


# === Transaction Fixtures ===


def make_transaction(
    reference_id: str = "TXN-TEST-1", amount: str = "100.00"
) -> Transaction:
    return Transaction(
        reference_id=reference_id,
        amount=Decimal(amount),
        product_info=f"Payment for AI chat service for {amount} INR",
        created_at=dt.datetime.now(dt.UTC),
    )


@pytest.fixture
def memory_stores() -> Stores:
    return Stores(
        transactions=InMemoryTransactionStore(),
        customers=InMemoryCustomerStore(),
        webhooks=InMemoryWebhookStore(),
    )


@pytest.fixture
def pending_transaction(memory_stores: Stores) -> Transaction:
    """A pending 100.00 INR transaction stored under TXN-TEST-1."""
    transaction = make_transaction()
    memory_stores.transactions.create(transaction)
    return transaction


# === Gateway Fixtures ===


@pytest.fixture
def gateway(settings: Settings) -> MagicMock:
    """PayU client double that accepts every initiation."""
    mock = MagicMock(spec=PayUClient)

    def _initiate(payload: dict[str, str]) -> GatewayHandoff:
        return GatewayHandoff(
            action_url=f"{settings.gateway_base_url}/_payment",
            form_fields=dict(payload),
        )

    mock.initiate.side_effect = _initiate
    return mock


@pytest.fixture
def services(settings: Settings, memory_stores: Stores, gateway: MagicMock) -> Services:
    return build_services(settings, stores=memory_stores, gateway=gateway)


def verify_payment_response(
    reference_id: str,
    status: str = "success",
    amount: str = "100.00",
    mihpayid: str = "G1",
) -> dict[str, Any]:
    """Body of a PayU ``verify_payment`` answer for one transaction."""
    return {
        "status": 1,
        "msg": "1 out of 1 Transactions Fetched Successfully",
        "transaction_details": {
            reference_id: {
                "mihpayid": mihpayid,
                "request_id": "",
                "bank_ref_num": "BRN123",
                "amt": amount,
                "transaction_amount": amount,
                "txnid": reference_id,
                "additional_charges": "0.00",
                "productinfo": f"Payment for AI chat service for {amount} INR",
                "firstname": "Jane",
                "status": status,
                "error_code": "E000",
                "Message": "No Error",
                "field9": "Transaction Completed Successfully",
            }
        },
    }


def not_found_response(reference_id: str) -> dict[str, Any]:
    return {
        "status": 0,
        "msg": "0 out of 1 Transactions Fetched Successfully",
        "transaction_details": {
            reference_id: {"mihpayid": "Not Found", "status": "Not Found"}
        },
    }
