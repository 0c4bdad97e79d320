"""Transaction persistence keyed by reference id.

Every write after creation goes through ``update_if_status``, a single-row
compare-and-swap on the status attribute. Two concurrent callbacks for the
same reference id therefore cannot both move it out of PENDING.
"""

import datetime as dt
import threading
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol

from paylink.models import Transaction, TransactionStatus

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


class TransactionStore(Protocol):
    """Persistence contract consumed by the reconciliation services."""

    def create(self, transaction: Transaction) -> bool:
        """Persist a new transaction. False if the reference id already exists."""
        ...

    def find_by_reference(self, reference_id: str) -> Transaction | None:
        ...

    def update_if_status(
        self,
        reference_id: str,
        expected_status: TransactionStatus,
        new_fields: dict[str, Any],
    ) -> bool:
        """Apply ``new_fields`` only while status equals ``expected_status``.

        Returns:
            True if the row was updated, False if the condition failed or the
            row does not exist
        """
        ...


def _serialize(value: Any) -> Any:
    if isinstance(value, TransactionStatus):
        return value.value
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class DynamoTransactionStore:
    """TransactionStore backed by the ``transactions`` DynamoDB table."""

    TABLE = "transactions"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def create(self, transaction: Transaction) -> bool:
        return self.db.put_item(
            self.TABLE,
            self._transaction_to_item(transaction),
            condition_expression="attribute_not_exists(reference_id)",
        )

    def find_by_reference(self, reference_id: str) -> Transaction | None:
        item = self.db.get_item(
            self.TABLE, {"reference_id": reference_id}, consistent_read=True
        )
        return self._item_to_transaction(item) if item else None

    def update_if_status(
        self,
        reference_id: str,
        expected_status: TransactionStatus,
        new_fields: dict[str, Any],
    ) -> bool:
        if not new_fields:
            return False

        names: dict[str, str] = {"#status": "status"}
        values: dict[str, Any] = {":expected": expected_status.value}
        assignments: list[str] = []
        for index, (field, value) in enumerate(new_fields.items()):
            placeholder = "#status" if field == "status" else f"#f{index}"
            names[placeholder] = field
            values[f":v{index}"] = _serialize(value)
            assignments.append(f"{placeholder} = :v{index}")

        attrs = self.db.update_item(
            self.TABLE,
            {"reference_id": reference_id},
            "SET " + ", ".join(assignments),
            values,
            names,
            condition_expression="attribute_exists(reference_id) AND #status = :expected",
        )
        return attrs is not None

    # Conversion helpers

    def _transaction_to_item(self, transaction: Transaction) -> dict[str, Any]:
        """Convert Transaction model to DynamoDB item."""
        item: dict[str, Any] = {
            "reference_id": transaction.reference_id,
            "amount": transaction.amount,
            "currency": transaction.currency,
            "product_info": transaction.product_info,
            "status": transaction.status.value,
            "created_at": transaction.created_at.isoformat(),
        }
        if transaction.gateway_payment_id:
            item["gateway_payment_id"] = transaction.gateway_payment_id
        if transaction.raw_callback_payload is not None:
            item["raw_callback_payload"] = _serialize(transaction.raw_callback_payload)
        if transaction.customer_id:
            item["customer_id"] = transaction.customer_id
        if transaction.updated_at:
            item["updated_at"] = transaction.updated_at.isoformat()
        return item

    def _item_to_transaction(self, item: dict[str, Any]) -> Transaction:
        """Convert DynamoDB item to Transaction model."""
        return Transaction(
            reference_id=item["reference_id"],
            amount=Decimal(str(item["amount"])),
            currency=item.get("currency", "INR"),
            product_info=item.get("product_info", ""),
            status=TransactionStatus(item["status"]),
            gateway_payment_id=item.get("gateway_payment_id"),
            raw_callback_payload=item.get("raw_callback_payload"),
            customer_id=item.get("customer_id"),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            updated_at=(
                dt.datetime.fromisoformat(item["updated_at"])
                if item.get("updated_at")
                else None
            ),
        )


class InMemoryTransactionStore:
    """Process-local TransactionStore for development and tests.

    A lock serializes conditional updates the same way DynamoDB serializes
    single-item writes.
    """

    def __init__(self) -> None:
        self._rows: dict[str, Transaction] = {}
        self._lock = threading.Lock()

    def create(self, transaction: Transaction) -> bool:
        with self._lock:
            if transaction.reference_id in self._rows:
                return False
            self._rows[transaction.reference_id] = transaction.model_copy(deep=True)
            return True

    def find_by_reference(self, reference_id: str) -> Transaction | None:
        with self._lock:
            row = self._rows.get(reference_id)
            return row.model_copy(deep=True) if row else None

    def update_if_status(
        self,
        reference_id: str,
        expected_status: TransactionStatus,
        new_fields: dict[str, Any],
    ) -> bool:
        with self._lock:
            row = self._rows.get(reference_id)
            if row is None or row.status != expected_status:
                return False
            self._rows[reference_id] = row.model_copy(update=new_fields, deep=True)
            return True
