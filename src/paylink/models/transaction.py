"""Transaction and customer models."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import TransactionStatus


class Transaction(BaseModel):
    """One payment attempt, keyed by the merchant-generated reference id.

    Amount is stored in rupees with two decimal places and never changes after
    creation. Status leaves PENDING exactly once.
    """

    model_config = ConfigDict(strict=True)

    reference_id: str = Field(..., description="Merchant-generated reference id (PayU txnid)")
    amount: Decimal = Field(..., gt=0, description="Amount with two decimal places")
    currency: str = Field(default="INR", description="Currency code")
    product_info: str = Field(default="", description="Signed product description")
    status: TransactionStatus = Field(
        default=TransactionStatus.PENDING, description="Transaction status"
    )
    gateway_payment_id: str | None = Field(
        default=None,
        description="Gateway payment id (PayU mihpayid), set on terminal transition",
    )
    raw_callback_payload: dict[str, Any] | None = Field(
        default=None,
        description="Payload that drove the terminal transition",
    )
    customer_id: str | None = Field(default=None, description="Linked customer, if any")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class Customer(BaseModel):
    """A paying customer. Transaction references are append-only."""

    model_config = ConfigDict(strict=True)

    customer_id: str
    name: str
    email: str
    contact: str = ""
    transaction_refs: list[str] = Field(default_factory=list)
    created_at: datetime
