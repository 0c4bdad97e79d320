"""Results returned by the reconciliation services."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import TransactionStatus


class GatewayHandoff(BaseModel):
    """What the gateway client produced for a payment initiation.

    ``action_url`` and ``form_fields`` are always present so a browser can post
    the payment form itself. ``redirect_url`` is set when the gateway answered
    the server-side initiation with a redirect to its hosted page.
    """

    action_url: str
    form_fields: dict[str, str] = Field(default_factory=dict)
    redirect_url: str | None = None


class IntentResult(BaseModel):
    """Gateway-ready data for a newly created payment intent."""

    model_config = ConfigDict(strict=True)

    reference_id: str
    amount: Decimal
    status: TransactionStatus = TransactionStatus.PENDING
    action_url: str
    form_fields: dict[str, str] = Field(default_factory=dict)
    redirect_url: str | None = Field(
        default=None,
        description="Hosted payment page URL, when the gateway returned one",
        examples=["https://test.payu.in/public/#/abc123"],
    )


class RedirectTarget(BaseModel):
    """Where to send the end user after a callback was processed."""

    url: str
    reference_id: str | None = None
    status: TransactionStatus | None = Field(
        default=None,
        description="Transaction status after processing, None when unknown",
    )
    transitioned: bool = Field(
        default=False,
        description="True only for the callback that moved the transaction out of pending",
    )
    review_required: bool = Field(
        default=False,
        description="Set when the callback conflicts with the stored outcome or amount",
    )


class StatusResult(BaseModel):
    """Normalized answer of the gateway's verification API."""

    reference_id: str
    status: TransactionStatus
    found: bool = True
    gateway_status: str | None = None
    gateway_payment_id: str | None = None
    amount: str | None = None
    message: str | None = None
    transitioned: bool = False
    review_required: bool = False
