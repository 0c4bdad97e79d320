"""Payment endpoints.

Provides REST endpoints for:
- Creating payment intents (JSON) and the browser redirect flow (query string)
- Verifying a payment with the gateway (reconciles stored state)
- Read-only gateway status and stored transaction lookups
- Health check
"""

from datetime import UTC, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from starlette.status import HTTP_201_CREATED, HTTP_302_FOUND

from paylink.config import Settings
from paylink.models import GatewayHandoff, IntentResult, StatusResult, Transaction
from paylink.services import (
    PaymentIntentService,
    VerificationClient,
    render_payment_form,
)
from paylink_api.dependencies import (
    get_app_settings,
    get_intent_service,
    get_verification_client,
)
from paylink_api.models import HealthResponse, IntentRequest, VerifyRequest

router = APIRouter(tags=["payments"])


@router.post(
    "/intents",
    summary="Create payment intent",
    description="""
Create a pending transaction and return the signed PayU payment form.

**Notes:**
- `amount` must be greater than zero; it is signed with two decimal places
- The transaction stays `pending` until a callback or verification resolves it
- `redirect_url` is set when PayU returned a hosted payment page
""",
    response_model=IntentResult,
    status_code=HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid amount or missing customer fields"},
        502: {"description": "PayU rejected the initiation or is unreachable"},
        503: {"description": "Merchant credentials not configured"},
    },
)
async def create_intent(
    body: IntentRequest,
    intents: PaymentIntentService = Depends(get_intent_service),
) -> IntentResult:
    return intents.create_intent(
        body.customer_name,
        body.customer_email,
        body.customer_phone,
        body.amount,
    )


@router.get(
    "/payment-redirect",
    summary="Redirect to PayU",
    description="""
Create a payment intent from query parameters and send the browser to PayU,
either by redirect to the hosted page or with a self-submitting form.
""",
    response_class=HTMLResponse,
    responses={
        302: {"description": "Redirect to the PayU hosted payment page"},
        200: {"description": "Self-submitting payment form"},
    },
)
async def payment_redirect(
    amount: Decimal = Query(..., gt=0),
    customer_name: str = Query("Customer", alias="customerName"),
    customer_email: str = Query("customer@example.com", alias="customerEmail"),
    customer_phone: str = Query("9999999999", alias="customerPhone"),
    intents: PaymentIntentService = Depends(get_intent_service),
) -> Response:
    intent = intents.create_intent(customer_name, customer_email, customer_phone, amount)
    if intent.redirect_url:
        return RedirectResponse(intent.redirect_url, status_code=HTTP_302_FOUND)
    handoff = GatewayHandoff(action_url=intent.action_url, form_fields=intent.form_fields)
    return HTMLResponse(render_payment_form(handoff))


@router.post(
    "/verify-payment",
    summary="Verify payment",
    description="""
Query PayU's verification API and reconcile the stored transaction.

A `status` of `error` means the gateway could not be reached; retry later.
`found` is false when PayU has no record of the reference id.
""",
    response_model=StatusResult,
    responses={404: {"description": "Reference id not found"}},
)
async def verify_payment(
    body: VerifyRequest,
    verification: VerificationClient = Depends(get_verification_client),
) -> StatusResult:
    return verification.verify(body.txnid)


@router.get(
    "/payment-status/{txnid}",
    summary="Get gateway payment status",
    description="Read-only gateway status for a reference id. Stored state is not changed.",
    response_model=StatusResult,
    responses={404: {"description": "Reference id not found"}},
)
async def get_payment_status(
    txnid: str,
    verification: VerificationClient = Depends(get_verification_client),
) -> StatusResult:
    return verification.get_status(txnid)


@router.get(
    "/transaction/{txnid}",
    summary="Get stored transaction",
    response_model=Transaction,
    responses={404: {"description": "Reference id not found"}},
)
async def get_transaction(
    txnid: str,
    intents: PaymentIntentService = Depends(get_intent_service),
) -> Transaction:
    return intents.get_transaction(txnid)


@router.get("/health", response_model=HealthResponse)
async def health(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(UTC).isoformat(),
        service="paylink",
        mode=settings.mode.value,
        gateway_configured=settings.has_credentials,
    )
