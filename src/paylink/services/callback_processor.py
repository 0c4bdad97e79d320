"""Inbound PayU callback processing.

Every callback (browser redirect to surl/furl or server-to-server webhook) is
parsed into its typed variant, signature-checked, audited and only then allowed
to drive a transaction out of PENDING. Repeated callbacks are no-ops, unknown
reference ids degrade to a generic failure page, and nothing here raises into
the redirect path except a signature failure.
"""

import datetime as dt
import logging
import uuid
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from paylink.config import Settings
from paylink.models import (
    CallbackEvent,
    CallbackOutcome,
    CallbackPayload,
    RedirectTarget,
    SignatureError,
    Transaction,
    TransactionStatus,
    WebhookRecord,
    map_gateway_status,
    parse_callback,
)
from paylink.utils.logging import log_webhook_event

from .hash_signer import HashSigner, format_amount
from .state_machine import StatusTransitioner, TransitionResult
from .transaction_store import TransactionStore
from .webhook_store import WebhookStore

logger = logging.getLogger(__name__)

SUCCESS_PAGE = "/payment/success"
FAILURE_PAGE = "/payment/failure"

_OUTCOME_EVENTS = {
    CallbackOutcome.SUCCESS: CallbackEvent.PAYMENT_SUCCESS,
    CallbackOutcome.FAILURE: CallbackEvent.PAYMENT_FAILURE,
}


def _raw_dict(raw: Mapping[str, Any]) -> dict[str, str]:
    result: dict[str, str] = {}
    for key, value in raw.items():
        if isinstance(value, (list, tuple)):
            value = value[-1] if value else ""
        result[str(key)] = "" if value is None else str(value)
    return result


def new_record_id() -> str:
    return f"WH-{uuid.uuid4().hex.upper()}"


class CallbackProcessor:
    """Reconciles gateway callbacks against stored transactions."""

    def __init__(
        self,
        settings: Settings,
        store: TransactionStore,
        webhooks: WebhookStore,
        signer: HashSigner | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.webhooks = webhooks
        self.signer = signer or HashSigner(settings.merchant_key, settings.merchant_salt)
        self.transitioner = StatusTransitioner(store)

    def handle_success(self, raw: Mapping[str, Any]) -> RedirectTarget:
        """Callback posted to the success URL."""
        return self.handle_callback(raw, CallbackOutcome.SUCCESS)

    def handle_failure(self, raw: Mapping[str, Any]) -> RedirectTarget:
        """Callback posted to the failure URL."""
        return self.handle_callback(raw, CallbackOutcome.FAILURE)

    def handle_webhook(self, raw: Mapping[str, Any]) -> RedirectTarget:
        """Server-to-server notification; the outcome comes from its status."""
        return self.handle_callback(raw, None, CallbackEvent.WEBHOOK)

    def handle_callback(
        self,
        raw: Mapping[str, Any],
        declared_outcome: CallbackOutcome | None,
        event_type: CallbackEvent | None = None,
    ) -> RedirectTarget:
        """Verify, audit and apply one inbound callback.

        Args:
            raw: Posted form or JSON body as received
            declared_outcome: Outcome implied by the endpoint that received the
                callback. None derives it from the payload's status.
            event_type: Audit event type. Defaults to the one matching
                ``declared_outcome``.

        Returns:
            RedirectTarget for the end user's browser

        Raises:
            SignatureError: If the payload's hash does not verify. The callback
                is still audited and no transaction is touched.
        """
        if event_type is None:
            event_type = _OUTCOME_EVENTS[declared_outcome or CallbackOutcome.FAILURE]

        received_at = dt.datetime.now(dt.UTC)
        raw_payload = _raw_dict(raw)
        payload = parse_callback(event_type, raw_payload)
        verified = self.signer.verify(payload)
        reference_id = payload.reference_id

        self.webhooks.append(
            WebhookRecord(
                record_id=new_record_id(),
                event_type=event_type,
                reference_id=reference_id,
                verified=verified,
                raw_payload=raw_payload,
                normalized_payload=payload.normalized(),
                received_at=received_at,
            )
        )

        if not verified:
            log_webhook_event(
                logger,
                event_type.value,
                reference_id,
                result="rejected",
                error="signature mismatch",
            )
            raise SignatureError(details={"reference_id": reference_id})

        transaction = self.store.find_by_reference(reference_id) if reference_id else None
        if transaction is None:
            log_webhook_event(logger, event_type.value, reference_id, result="not_found")
            return RedirectTarget(
                url=self.generic_failure_url(), reference_id=reference_id or None
            )

        if declared_outcome is not None:
            target_status = declared_outcome.target_status
        else:
            target_status = map_gateway_status(payload.status)

        transition = self.transitioner.transition(
            transaction,
            target_status,
            gateway_payment_id=payload.gateway_payment_id,
            raw_payload=raw_payload,
            reported_amount=payload.amount,
        )

        result = transition.result.value
        if transition.result is TransitionResult.AMOUNT_MISMATCH:
            result = "review"
        elif transition.result is TransitionResult.NOT_TERMINAL:
            result = "received"
        log_webhook_event(
            logger,
            event_type.value,
            reference_id,
            result=result,
            status=transition.status.value,
        )

        return RedirectTarget(
            url=self.redirect_url(transaction, transition.status, payload),
            reference_id=reference_id,
            status=transition.status,
            transitioned=transition.applied,
            review_required=transition.review_required,
        )

    def generic_failure_url(self) -> str:
        """Failure page without query parameters."""
        return f"{self.settings.frontend_base_url}{FAILURE_PAGE}"

    def redirect_url(
        self,
        transaction: Transaction,
        status: TransactionStatus,
        payload: CallbackPayload,
    ) -> str:
        """Front-end page reflecting the transaction's status after processing.

        Anything other than SUCCESS (including a transaction held pending for
        review) lands on the failure page.
        """
        params = {
            "referenceId": transaction.reference_id,
            "amount": format_amount(transaction.amount),
            "firstname": payload.first_name,
            "email": payload.email,
            "phone": payload.phone,
        }
        if status is TransactionStatus.SUCCESS:
            page = SUCCESS_PAGE
        else:
            page = FAILURE_PAGE
            params["error_code"] = payload.error_code
            params["error_message"] = payload.error_message
        return f"{self.settings.frontend_base_url}{page}?{urlencode(params)}"
