"""Typed PayU callback payloads and the webhook audit record.

PayU posts flat form bodies with dozens of optional keys. Each inbound event
type gets its own model; known keys map onto named fields, ``field1..field9``
land in ``merchant_fields`` and anything else is kept in ``extra`` so that no
part of the payload is lost.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from .enums import CallbackEvent

MERCHANT_FIELD_KEYS = tuple(f"field{i}" for i in range(1, 10))


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = value[-1] if value else ""
    return str(value)


class CallbackPayload(BaseModel):
    """Fields shared by every PayU callback.

    Field aliases are the gateway's own form keys, so a payload parses
    directly from the posted form.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event: ClassVar[CallbackEvent] = CallbackEvent.WEBHOOK

    reference_id: str = Field(default="", alias="txnid")
    gateway_payment_id: str = Field(default="", alias="mihpayid")
    status: str = ""
    amount: str = ""
    key: str = ""
    product_info: str = Field(default="", alias="productinfo")
    first_name: str = Field(default="", alias="firstname")
    email: str = ""
    phone: str = ""
    udf1: str = ""
    udf2: str = ""
    udf3: str = ""
    udf4: str = ""
    udf5: str = ""
    bank_ref_num: str = ""
    mode: str = ""
    error_code: str = Field(default="", alias="error")
    error_message: str = Field(default="", alias="error_Message")
    additional_charges: str = Field(default="", alias="additionalCharges")
    signature: str = Field(default="", alias="hash")

    merchant_fields: dict[str, str] = Field(default_factory=dict)
    extra: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def known_keys(cls) -> set[str]:
        """Form keys (gateway aliases and field names) of named fields."""
        keys = set()
        for name, info in cls.model_fields.items():
            if name in ("merchant_fields", "extra"):
                continue
            keys.add(name)
            if info.alias:
                keys.add(info.alias)
        return keys

    @classmethod
    def from_form(cls, raw: Mapping[str, Any]) -> "CallbackPayload":
        """Parse a raw callback form into this payload type.

        Args:
            raw: Posted form or JSON body; values are coerced to strings and
                missing optional keys default to empty strings

        Returns:
            Parsed payload with unknown keys preserved in ``extra``
        """
        known = cls.known_keys()
        named: dict[str, str] = {}
        merchant_fields: dict[str, str] = {}
        extra: dict[str, str] = {}

        for key, value in raw.items():
            text = _as_text(value)
            if key in known:
                named[key] = text
            elif key in MERCHANT_FIELD_KEYS:
                merchant_fields[key] = text
            else:
                extra[key] = text

        return cls.model_validate(
            {**named, "merchant_fields": merchant_fields, "extra": extra}
        )

    @property
    def udfs(self) -> tuple[str, str, str, str, str]:
        return (self.udf1, self.udf2, self.udf3, self.udf4, self.udf5)

    def normalized(self) -> dict[str, Any]:
        """Internal WebhookRecord shape for this payload."""
        return {
            "reference_id": self.reference_id,
            "gateway_payment_id": self.gateway_payment_id,
            "status": self.status,
            "amount": self.amount,
            "customer_name": self.first_name,
            "customer_email": self.email,
            "customer_phone": self.phone,
            "product_info": self.product_info,
            "bank_ref_num": self.bank_ref_num,
            "payment_mode": self.mode,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "merchant_fields": dict(self.merchant_fields),
        }


class SuccessCallback(CallbackPayload):
    """Body PayU posts to the success URL (surl)."""

    event: ClassVar[CallbackEvent] = CallbackEvent.PAYMENT_SUCCESS


class FailureCallback(CallbackPayload):
    """Body PayU posts to the failure URL (furl).

    Carries customer address and settlement details on top of the common
    fields.
    """

    event: ClassVar[CallbackEvent] = CallbackEvent.PAYMENT_FAILURE

    unmapped_status: str = Field(default="", alias="unmappedstatus")
    net_amount_debit: str = ""
    added_on: str = Field(default="", alias="addedon")
    last_name: str = Field(default="", alias="lastname")
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    zipcode: str = ""
    payment_source: str = ""

    def normalized(self) -> dict[str, Any]:
        normalized = super().normalized()
        normalized.update(
            {
                "unmapped_status": self.unmapped_status,
                "net_amount_debit": self.net_amount_debit,
                "added_on": self.added_on,
                "customer_last_name": self.last_name,
                "customer_address1": self.address1,
                "customer_address2": self.address2,
                "customer_city": self.city,
                "customer_state": self.state,
                "customer_country": self.country,
                "customer_zipcode": self.zipcode,
                "payment_source": self.payment_source,
            }
        )
        return normalized


class WebhookCallback(CallbackPayload):
    """Asynchronous server-to-server notification (same shape as success)."""

    event: ClassVar[CallbackEvent] = CallbackEvent.WEBHOOK


CALLBACK_TYPES: dict[CallbackEvent, type[CallbackPayload]] = {
    CallbackEvent.PAYMENT_SUCCESS: SuccessCallback,
    CallbackEvent.PAYMENT_FAILURE: FailureCallback,
    CallbackEvent.WEBHOOK: WebhookCallback,
}


def parse_callback(event: CallbackEvent, raw: Mapping[str, Any]) -> CallbackPayload:
    """Parse a raw form into the payload variant for ``event``."""
    return CALLBACK_TYPES[event].from_form(raw)


class WebhookRecord(BaseModel):
    """Audit log entry for one inbound callback.

    Written once per callback, duplicates and unverified payloads included.
    Never updated.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    record_id: str = Field(..., description="Unique record id")
    event_type: CallbackEvent = Field(..., description="Inbound event type")
    reference_id: str = Field(default="", description="Reference id from the payload")
    verified: bool = Field(..., description="Whether the signature verified")
    raw_payload: dict[str, Any] = Field(default_factory=dict)
    normalized_payload: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(..., description="When the callback was received")
