"""PayU callback endpoints.

Provides endpoints for:
- surl / furl browser callbacks, answered with a 303 redirect to the front-end
- server-to-server webhooks, answered with a JSON acknowledgement

These endpoints do NOT require authentication; they receive payloads signed
with the merchant salt. They never surface errors to the gateway unless
``reject_invalid_signatures`` is enabled.
"""

import json
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from paylink.config import Settings
from paylink.models import (
    CallbackOutcome,
    RedirectTarget,
    SignatureError,
    TransactionStatus,
)
from paylink.services import CallbackProcessor
from paylink.utils.logging import get_logger
from paylink_api.dependencies import get_app_settings, get_callback_processor
from paylink_api.models import CallbackAck

logger = get_logger(__name__)

router = APIRouter(tags=["callbacks"])


async def _read_payload(request: Request) -> dict[str, Any]:
    """Decode a form-encoded or JSON callback body."""
    body = await request.body()
    if not body:
        return {}
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            data = json.loads(body)
        except ValueError:
            logger.warning("Callback body is not valid JSON")
            return {}
        return data if isinstance(data, dict) else {}
    return dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))


def _processing_result(target: RedirectTarget) -> str:
    if target.status is None:
        return "not_found"
    if target.transitioned:
        return "applied"
    if target.review_required:
        return "review"
    if target.status is TransactionStatus.PENDING:
        return "received"
    return "duplicate"


async def _redirect_callback(
    request: Request,
    outcome: CallbackOutcome,
    processor: CallbackProcessor,
    settings: Settings,
) -> RedirectResponse:
    raw = await _read_payload(request)
    try:
        target = processor.handle_callback(raw, outcome)
    except SignatureError:
        if settings.reject_invalid_signatures:
            raise
        return RedirectResponse(
            processor.generic_failure_url(), status_code=HTTP_303_SEE_OTHER
        )
    return RedirectResponse(target.url, status_code=HTTP_303_SEE_OTHER)


@router.post(
    "/success",
    summary="PayU success callback (surl)",
    status_code=HTTP_303_SEE_OTHER,
    response_class=RedirectResponse,
    responses={303: {"description": "Redirect to the front-end result page"}},
)
async def payment_success(
    request: Request,
    processor: CallbackProcessor = Depends(get_callback_processor),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    return await _redirect_callback(request, CallbackOutcome.SUCCESS, processor, settings)


@router.post(
    "/failure",
    summary="PayU failure callback (furl)",
    status_code=HTTP_303_SEE_OTHER,
    response_class=RedirectResponse,
    responses={303: {"description": "Redirect to the front-end result page"}},
)
async def payment_failure(
    request: Request,
    processor: CallbackProcessor = Depends(get_callback_processor),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    return await _redirect_callback(request, CallbackOutcome.FAILURE, processor, settings)


@router.post(
    "/webhook",
    summary="PayU webhook",
    description="""
Server-to-server payment notification.

**Idempotent**: repeated notifications return 200 with a `duplicate` result.
""",
    response_model=CallbackAck,
)
async def payment_webhook(
    request: Request,
    processor: CallbackProcessor = Depends(get_callback_processor),
    settings: Settings = Depends(get_app_settings),
) -> CallbackAck:
    raw = await _read_payload(request)
    try:
        target = processor.handle_webhook(raw)
    except SignatureError:
        if settings.reject_invalid_signatures:
            raise
        return CallbackAck(
            reference_id=str(raw.get("txnid") or "") or None,
            processing_result="rejected",
        )

    return CallbackAck(
        reference_id=target.reference_id,
        status=target.status.value if target.status else None,
        processing_result=_processing_result(target),
        review_required=target.review_required,
    )
