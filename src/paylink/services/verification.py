"""Pull-based status reconciliation through PayU's ``verify_payment`` API."""

import datetime as dt
import logging
from typing import Any

from paylink.config import Settings
from paylink.models import (
    CallbackEvent,
    GatewayError,
    NotFoundError,
    StatusResult,
    Transaction,
    TransactionStatus,
    WebhookRecord,
    map_gateway_status,
)
from paylink.utils.logging import log_payment_operation

from .callback_processor import new_record_id
from .gateway_client import GatewayClient
from .hash_signer import HashSigner
from .state_machine import StatusTransitioner
from .transaction_store import TransactionStore
from .webhook_store import WebhookStore

logger = logging.getLogger(__name__)

VERIFY_COMMAND = "verify_payment"
NOT_FOUND_STATUS = "not found"


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class VerificationClient:
    """Queries the gateway for a transaction's status.

    ``get_status`` only reports. ``verify`` also applies a terminal outcome
    to the stored transaction and audits the gateway's answer.
    """

    def __init__(
        self,
        settings: Settings,
        store: TransactionStore,
        gateway: GatewayClient,
        webhooks: WebhookStore | None = None,
        signer: HashSigner | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.gateway = gateway
        self.webhooks = webhooks
        self.signer = signer or HashSigner(settings.merchant_key, settings.merchant_salt)
        self.transitioner = StatusTransitioner(store)

    def verify(self, reference_id: str) -> StatusResult:
        """Query the gateway and reconcile the stored transaction.

        Args:
            reference_id: Merchant reference id (PayU txnid)

        Returns:
            StatusResult. ``status`` is ERROR when the gateway could not be
            reached; the stored transaction is then left untouched.

        Raises:
            ConfigurationError: If merchant credentials are missing
            NotFoundError: If the reference id is not stored locally
        """
        transaction = self._load(reference_id)
        result, details = self._query(reference_id)
        if result.status is TransactionStatus.ERROR:
            return result

        self._audit(reference_id, details, result)
        if not result.found:
            log_payment_operation(
                logger,
                "verify_payment",
                reference_id=reference_id,
                status=result.status.value,
                gateway_status=result.gateway_status or "",
            )
            return result

        transition = self.transitioner.transition(
            transaction,
            result.status,
            gateway_payment_id=result.gateway_payment_id,
            raw_payload=details,
            reported_amount=result.amount,
        )
        log_payment_operation(
            logger,
            "verify_payment",
            reference_id=reference_id,
            status=transition.status.value,
            result=transition.result.value,
        )
        return result.model_copy(
            update={
                "status": transition.status,
                "transitioned": transition.applied,
                "review_required": transition.review_required,
            }
        )

    def get_status(self, reference_id: str) -> StatusResult:
        """Same query as ``verify`` without touching stored state.

        Raises:
            ConfigurationError: If merchant credentials are missing
            NotFoundError: If the reference id is not stored locally
        """
        self._load(reference_id)
        result, _ = self._query(reference_id)
        return result

    def _load(self, reference_id: str) -> Transaction:
        self.settings.require_credentials()
        transaction = self.store.find_by_reference(reference_id)
        if transaction is None:
            raise NotFoundError(details={"reference_id": reference_id})
        return transaction

    def _query(self, reference_id: str) -> tuple[StatusResult, dict[str, Any]]:
        """Run the signed query and normalize the answer.

        Returns:
            The normalized result and the raw per-transaction details
        """
        signed_query = {
            "key": self.settings.merchant_key,
            "command": VERIFY_COMMAND,
            "var1": reference_id,
            "hash": self.signer.sign_command(VERIFY_COMMAND, reference_id),
        }
        try:
            body = self.gateway.query_status(signed_query)
        except GatewayError as exc:
            message = (exc.details or {}).get("message", exc.message)
            log_payment_operation(
                logger, "verify_payment", reference_id=reference_id, error=message
            )
            return (
                StatusResult(
                    reference_id=reference_id,
                    status=TransactionStatus.ERROR,
                    message=message,
                ),
                {},
            )

        all_details = body.get("transaction_details")
        if not isinstance(all_details, dict):
            all_details = {}
        details = all_details.get(reference_id) or {}
        if not isinstance(details, dict):
            details = {}
        gateway_status = _text(details.get("status"))

        if not details or (gateway_status or "").lower() == NOT_FOUND_STATUS:
            return (
                StatusResult(
                    reference_id=reference_id,
                    status=TransactionStatus.PENDING,
                    found=False,
                    gateway_status=gateway_status,
                    message=_text(body.get("msg")),
                ),
                details,
            )

        return (
            StatusResult(
                reference_id=reference_id,
                status=map_gateway_status(gateway_status),
                gateway_status=gateway_status,
                gateway_payment_id=_text(details.get("mihpayid")),
                amount=_text(details.get("amt") or details.get("transaction_amount")),
                message=_text(details.get("field9") or details.get("error_Message")),
            ),
            details,
        )

    def _audit(
        self, reference_id: str, details: dict[str, Any], result: StatusResult
    ) -> None:
        if self.webhooks is None:
            return
        self.webhooks.append(
            WebhookRecord(
                record_id=new_record_id(),
                event_type=CallbackEvent.VERIFICATION,
                reference_id=reference_id,
                verified=True,
                raw_payload={str(k): v for k, v in details.items()},
                normalized_payload={
                    "reference_id": reference_id,
                    "gateway_payment_id": result.gateway_payment_id or "",
                    "status": result.gateway_status or "",
                    "amount": result.amount or "",
                },
                received_at=dt.datetime.now(dt.UTC),
            )
        )
