"""Unit tests for PaymentIntentService.

Test categories:
- Intent creation: persisted pending row, signed gateway payload
- Validation: credentials, amount, customer fields
- Gateway failure leaves the transaction pending
- Reference id collisions and customer linking
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from conftest import FRONTEND, PUBLIC, TEST_KEY
from paylink.config import Settings
from paylink.models import (
    ConfigurationError,
    ErrorCode,
    GatewayError,
    GatewayHandoff,
    InvalidRequestError,
    NotFoundError,
    TransactionStatus,
)
from paylink.services import (
    HashSigner,
    InMemoryCustomerStore,
    InMemoryTransactionStore,
    PaymentIntentService,
    Services,
    Stores,
)


class _CollidingStore(InMemoryTransactionStore):
    """Rejects the first ``collisions`` creates as if the id already existed."""

    def __init__(self, collisions: int) -> None:
        super().__init__()
        self.collisions = collisions
        self.attempted: list[str] = []

    def create(self, transaction):  # type: ignore[no-untyped-def]
        self.attempted.append(transaction.reference_id)
        if len(self.attempted) <= self.collisions:
            return False
        return super().create(transaction)


class TestCreateIntent:
    def test_persists_pending_transaction(self, services: Services) -> None:
        result = services.intents.create_intent("Jane", "jane@x.com", "9999999999", 100.00)

        assert result.reference_id.startswith("TXN")
        assert len(result.reference_id) <= 25
        assert result.amount == Decimal("100.00")
        assert result.status is TransactionStatus.PENDING

        stored = services.stores.transactions.find_by_reference(result.reference_id)
        assert stored.status is TransactionStatus.PENDING
        assert stored.amount == Decimal("100.00")
        assert stored.product_info == "Payment for AI chat service for 100.00 INR"

    def test_gateway_payload_is_signed(
        self, services: Services, gateway: MagicMock, signer: HashSigner
    ) -> None:
        result = services.intents.create_intent("Jane", "jane@x.com", "9999999999", "100")

        payload = gateway.initiate.call_args.args[0]
        assert payload["key"] == TEST_KEY
        assert payload["txnid"] == result.reference_id
        assert payload["amount"] == "100.00"
        assert payload["phone"] == "9999999999"
        assert payload["currency"] == "INR"
        assert payload["surl"] == f"{PUBLIC}/api/payu/success"
        assert payload["furl"] == f"{PUBLIC}/api/payu/failure"
        assert payload["hash"] == signer.sign_payment_request(
            reference_id=result.reference_id,
            amount="100.00",
            product_info=payload["productinfo"],
            first_name="Jane",
            email="jane@x.com",
        )
        assert result.form_fields == payload

    def test_reference_ids_are_unique(self, services: Services) -> None:
        ids = {
            services.intents.create_intent("Jane", "jane@x.com", "1", 10).reference_id
            for _ in range(25)
        }
        assert len(ids) == 25

    def test_redirect_url_is_passed_through(
        self, services: Services, gateway: MagicMock
    ) -> None:
        gateway.initiate.side_effect = None
        gateway.initiate.return_value = GatewayHandoff(
            action_url="https://test.payu.in/_payment",
            redirect_url="https://test.payu.in/public/#/abc",
        )
        result = services.intents.create_intent("Jane", "jane@x.com", "1", 10)
        assert result.redirect_url == "https://test.payu.in/public/#/abc"


class TestValidation:
    def test_missing_credentials(self, memory_stores: Stores, gateway: MagicMock) -> None:
        service = PaymentIntentService(
            Settings(frontend_base_url=FRONTEND), memory_stores.transactions, gateway
        )
        with pytest.raises(ConfigurationError):
            service.create_intent("Jane", "jane@x.com", "1", 100)
        gateway.initiate.assert_not_called()

    @pytest.mark.parametrize("amount", [0, -5, "abc", None])
    def test_invalid_amount(
        self, services: Services, gateway: MagicMock, amount: object
    ) -> None:
        with pytest.raises(InvalidRequestError) as exc_info:
            services.intents.create_intent("Jane", "jane@x.com", "1", amount)
        assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
        gateway.initiate.assert_not_called()

    @pytest.mark.parametrize("name,email", [("", "jane@x.com"), ("Jane", "")])
    def test_missing_customer_fields(
        self, services: Services, name: str, email: str
    ) -> None:
        with pytest.raises(InvalidRequestError) as exc_info:
            services.intents.create_intent(name, email, "1", 100)
        assert exc_info.value.code == ErrorCode.INVALID_REQUEST


class TestGatewayFailure:
    def test_transaction_stays_pending(
        self, services: Services, gateway: MagicMock
    ) -> None:
        gateway.initiate.side_effect = GatewayError(details={"message": "HTTP 500"})

        with pytest.raises(GatewayError) as exc_info:
            services.intents.create_intent("Jane", "jane@x.com", "1", 100)

        reference_id = exc_info.value.details["reference_id"]
        stored = services.stores.transactions.find_by_reference(reference_id)
        assert stored.status is TransactionStatus.PENDING


class TestReferenceCollision:
    def test_regenerates_on_collision(self, settings: Settings, gateway: MagicMock) -> None:
        store = _CollidingStore(collisions=2)
        service = PaymentIntentService(settings, store, gateway)

        result = service.create_intent("Jane", "jane@x.com", "1", 100)

        assert len(store.attempted) == 3
        assert result.reference_id == store.attempted[-1]
        assert gateway.initiate.call_args.args[0]["txnid"] == result.reference_id

    def test_gives_up_after_three_attempts(
        self, settings: Settings, gateway: MagicMock
    ) -> None:
        store = _CollidingStore(collisions=3)
        service = PaymentIntentService(settings, store, gateway)

        with pytest.raises(InvalidRequestError):
            service.create_intent("Jane", "jane@x.com", "1", 100)
        gateway.initiate.assert_not_called()


class TestCustomers:
    def test_links_customer(self, services: Services) -> None:
        first = services.intents.create_intent("Jane", "jane@x.com", "1", 100)
        second = services.intents.create_intent("Jane", "jane@x.com", "1", 50)

        customer = services.stores.customers.get_by_email("jane@x.com")
        assert customer.transaction_refs == [first.reference_id, second.reference_id]
        stored = services.stores.transactions.find_by_reference(first.reference_id)
        assert stored.customer_id == customer.customer_id

    def test_customer_persistence_can_be_disabled(
        self, settings: Settings, gateway: MagicMock
    ) -> None:
        customers = InMemoryCustomerStore()
        service = PaymentIntentService(
            settings.model_copy(update={"persist_customers": False}),
            InMemoryTransactionStore(),
            gateway,
            customers,
        )
        service.create_intent("Jane", "jane@x.com", "1", 100)
        assert customers.get_by_email("jane@x.com") is None

    def test_customer_store_outage_does_not_block_intent(
        self, settings: Settings, gateway: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        customers = MagicMock()
        customers.link_transaction.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "x"}},
            "PutItem",
        )
        store = InMemoryTransactionStore()
        service = PaymentIntentService(settings, store, gateway, customers)

        result = service.create_intent("Jane", "jane@x.com", "1", 100)

        gateway.initiate.assert_called_once()
        stored = store.find_by_reference(result.reference_id)
        assert stored.status is TransactionStatus.PENDING
        assert stored.customer_id is None
        assert f"Failed to link customer for {result.reference_id}" in caplog.text


class TestGetTransaction:
    def test_found(self, services: Services) -> None:
        result = services.intents.create_intent("Jane", "jane@x.com", "1", 100)
        assert services.intents.get_transaction(result.reference_id).reference_id == (
            result.reference_id
        )

    def test_not_found(self, services: Services) -> None:
        with pytest.raises(NotFoundError):
            services.intents.get_transaction("TXN-NOPE")
