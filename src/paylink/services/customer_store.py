"""Customer persistence with an append-only list of transaction references.

A customer's id is derived from the normalized email, so concurrent first
payments for the same email address converge on one row.
"""

import datetime as dt
import hashlib
import threading
from typing import TYPE_CHECKING, Any, Protocol

from paylink.models import Customer

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


class CustomerStore(Protocol):
    def link_transaction(
        self, *, name: str, email: str, contact: str, reference_id: str
    ) -> Customer:
        """Find or create the customer by email and append ``reference_id``."""
        ...


def customer_id_for(email: str) -> str:
    digest = hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()
    return f"CUST-{digest[:16].upper()}"


class DynamoCustomerStore:
    """CustomerStore backed by the ``customers`` table."""

    TABLE = "customers"
    APPEND_REF = (
        "SET transaction_refs = list_append(if_not_exists(transaction_refs, :empty), :ref)"
    )

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def get_by_email(self, email: str) -> Customer | None:
        item = self.db.get_item(
            self.TABLE, {"customer_id": customer_id_for(email)}, consistent_read=True
        )
        return self._item_to_customer(item) if item else None

    def link_transaction(
        self, *, name: str, email: str, contact: str, reference_id: str
    ) -> Customer:
        customer = Customer(
            customer_id=customer_id_for(email),
            name=name,
            email=email,
            contact=contact,
            transaction_refs=[reference_id],
            created_at=dt.datetime.now(dt.UTC),
        )
        created = self.db.put_item(
            self.TABLE,
            {
                "customer_id": customer.customer_id,
                "name": customer.name,
                "email": customer.email,
                "contact": customer.contact,
                "transaction_refs": customer.transaction_refs,
                "created_at": customer.created_at.isoformat(),
            },
            condition_expression="attribute_not_exists(customer_id)",
        )
        if created:
            return customer

        # Row already exists (possibly created concurrently); append atomically
        attrs = self.db.update_item(
            self.TABLE,
            {"customer_id": customer.customer_id},
            self.APPEND_REF,
            {":empty": [], ":ref": [reference_id]},
        )
        return self._item_to_customer(attrs) if attrs else customer

    def _item_to_customer(self, item: dict[str, Any]) -> Customer:
        """Convert DynamoDB item to Customer model."""
        return Customer(
            customer_id=item["customer_id"],
            name=item.get("name", ""),
            email=item["email"],
            contact=item.get("contact", ""),
            transaction_refs=list(item.get("transaction_refs", [])),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
        )


class InMemoryCustomerStore:
    """Process-local CustomerStore for development and tests."""

    def __init__(self) -> None:
        self._rows: dict[str, Customer] = {}
        self._lock = threading.Lock()

    def get_by_email(self, email: str) -> Customer | None:
        with self._lock:
            customer = self._rows.get(customer_id_for(email))
            return customer.model_copy(deep=True) if customer else None

    def link_transaction(
        self, *, name: str, email: str, contact: str, reference_id: str
    ) -> Customer:
        customer_id = customer_id_for(email)
        with self._lock:
            customer = self._rows.get(customer_id)
            if customer is None:
                customer = Customer(
                    customer_id=customer_id,
                    name=name,
                    email=email,
                    contact=contact,
                    created_at=dt.datetime.now(dt.UTC),
                )
                self._rows[customer_id] = customer
            customer.transaction_refs.append(reference_id)
            return customer.model_copy(deep=True)
