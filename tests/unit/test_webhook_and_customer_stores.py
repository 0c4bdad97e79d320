"""Unit tests for the webhook audit log and customer persistence."""

import datetime as dt
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from paylink.models import CallbackEvent, WebhookRecord
from paylink.services import (
    DynamoCustomerStore,
    DynamoDBService,
    DynamoWebhookStore,
    InMemoryCustomerStore,
    InMemoryWebhookStore,
)
from paylink.services.customer_store import customer_id_for


def _record(record_id: str, reference_id: str = "TXN-1", verified: bool = True) -> WebhookRecord:
    return WebhookRecord(
        record_id=record_id,
        event_type=CallbackEvent.PAYMENT_SUCCESS,
        reference_id=reference_id,
        verified=verified,
        raw_payload={"txnid": reference_id, "amount": "100.00"},
        normalized_payload={"reference_id": reference_id, "merchant_fields": {}},
        received_at=dt.datetime.now(dt.UTC),
    )


class TestDynamoWebhookStore:
    def test_append_and_list(self, dynamodb_tables: DynamoDBService) -> None:
        store = DynamoWebhookStore(dynamodb_tables)
        store.append(_record("WH-1"))
        store.append(_record("WH-2", verified=False))
        store.append(_record("WH-3", reference_id="TXN-OTHER"))

        records = store.list_for_reference("TXN-1")

        assert sorted(r.record_id for r in records) == ["WH-1", "WH-2"]
        assert {r.verified for r in records} == {True, False}
        assert records[0].raw_payload["amount"] == "100.00"

    def test_record_without_reference_is_stored(
        self, dynamodb_tables: DynamoDBService
    ) -> None:
        store = DynamoWebhookStore(dynamodb_tables)
        store.append(_record("WH-EMPTY", reference_id=""))

        item = dynamodb_tables.get_item("webhook-records", {"record_id": "WH-EMPTY"})
        assert item is not None
        assert "reference_id" not in item

    def test_write_failure_does_not_raise(self, caplog: pytest.LogCaptureFixture) -> None:
        db = MagicMock()
        db.put_item.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "x"}},
            "PutItem",
        )

        DynamoWebhookStore(db).append(_record("WH-1"))

        assert "Failed to append webhook record WH-1" in caplog.text


class TestInMemoryWebhookStore:
    def test_append_is_ordered(self) -> None:
        store = InMemoryWebhookStore()
        store.append(_record("WH-1"))
        store.append(_record("WH-2"))
        assert [r.record_id for r in store.records] == ["WH-1", "WH-2"]
        assert len(store.list_for_reference("TXN-1")) == 2


class TestCustomerStores:
    @pytest.fixture(params=["dynamodb", "memory"])
    def customers(self, request: pytest.FixtureRequest):
        if request.param == "dynamodb":
            return DynamoCustomerStore(request.getfixturevalue("dynamodb_tables"))
        return InMemoryCustomerStore()

    def test_creates_customer_on_first_transaction(self, customers) -> None:
        customer = customers.link_transaction(
            name="Jane", email="jane@x.com", contact="999", reference_id="TXN-1"
        )
        assert customer.customer_id.startswith("CUST-")
        assert customer.transaction_refs == ["TXN-1"]

    def test_appends_references_in_order(self, customers) -> None:
        first = customers.link_transaction(
            name="Jane", email="jane@x.com", contact="999", reference_id="TXN-1"
        )
        second = customers.link_transaction(
            name="Jane", email="jane@x.com", contact="999", reference_id="TXN-2"
        )
        assert second.customer_id == first.customer_id
        assert second.transaction_refs == ["TXN-1", "TXN-2"]
        assert customers.get_by_email("jane@x.com").transaction_refs == ["TXN-1", "TXN-2"]

    def test_distinct_emails_are_distinct_customers(self, customers) -> None:
        a = customers.link_transaction(
            name="A", email="a@x.com", contact="", reference_id="TXN-1"
        )
        b = customers.link_transaction(
            name="B", email="b@x.com", contact="", reference_id="TXN-2"
        )
        assert a.customer_id != b.customer_id
        assert customers.get_by_email("missing@x.com") is None

    def test_email_case_maps_to_one_customer(self, customers) -> None:
        a = customers.link_transaction(
            name="Jane", email="Jane@X.com", contact="", reference_id="TXN-1"
        )
        b = customers.link_transaction(
            name="Jane", email=" jane@x.com", contact="", reference_id="TXN-2"
        )
        assert a.customer_id == b.customer_id == customer_id_for("jane@x.com")


class TestConcurrentFirstLink:
    def test_two_writers_share_one_dynamodb_row(
        self, dynamodb_tables: DynamoDBService
    ) -> None:
        # Two API instances, each seeing the email for the first time
        writer_a = DynamoCustomerStore(dynamodb_tables)
        writer_b = DynamoCustomerStore(dynamodb_tables)

        writer_a.link_transaction(
            name="Jane", email="new@x.com", contact="", reference_id="TXN-A"
        )
        second = writer_b.link_transaction(
            name="Jane", email="new@x.com", contact="", reference_id="TXN-B"
        )

        items = dynamodb_tables.table("customers").scan()["Items"]
        assert len(items) == 1
        assert sorted(items[0]["transaction_refs"]) == ["TXN-A", "TXN-B"]
        assert second.transaction_refs == ["TXN-A", "TXN-B"]

    def test_threads_share_one_in_memory_row(self) -> None:
        customers = InMemoryCustomerStore()
        barrier = threading.Barrier(8)

        def link(ref: str) -> str:
            barrier.wait()
            return customers.link_transaction(
                name="Jane", email="new@x.com", contact="", reference_id=ref
            ).customer_id

        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = set(pool.map(link, [f"TXN-{i}" for i in range(8)]))

        assert len(ids) == 1
        assert len(customers.get_by_email("new@x.com").transaction_refs) == 8
