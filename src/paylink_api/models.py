"""API models for PayU endpoints.

Request bodies accept the camelCase keys the merchant front-end sends as well
as snake_case field names.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class IntentRequest(BaseModel):
    """Request to create a payment intent."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "customerName": "Jane",
                    "customerEmail": "jane@example.com",
                    "customerPhone": "9999999999",
                    "amount": 100.0,
                }
            ]
        },
    )

    customer_name: str = Field(..., min_length=1, alias="customerName")
    customer_email: str = Field(..., min_length=3, alias="customerEmail")
    customer_phone: str = Field(default="", alias="customerPhone")
    amount: Decimal = Field(..., gt=0, description="Amount in INR", examples=[100.0])


class VerifyRequest(BaseModel):
    """Request to verify a payment with the gateway."""

    model_config = ConfigDict(json_schema_extra={"examples": [{"txnid": "TXN1718000000000A1B2C3D4"}]})

    txnid: str = Field(..., min_length=1, description="Merchant reference id")


class CallbackAck(BaseModel):
    """Acknowledgement returned to server-to-server webhooks."""

    received: bool = True
    reference_id: str | None = None
    status: str | None = None
    processing_result: str = Field(
        ..., description="applied, duplicate, review, not_found, received or rejected"
    )
    review_required: bool = False


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str
    mode: str
    gateway_configured: bool
