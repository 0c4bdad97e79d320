"""Payment intent creation.

Creates the pending transaction, signs the PayU initiation payload and hands
it to the gateway client.
"""

import datetime as dt
import logging
import time
import uuid
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from paylink.config import Settings
from paylink.models import (
    ErrorCode,
    GatewayError,
    IntentResult,
    InvalidRequestError,
    NotFoundError,
    Transaction,
    TransactionStatus,
)
from paylink.utils.logging import log_payment_operation

from .customer_store import CustomerStore
from .gateway_client import GatewayClient
from .hash_signer import HashSigner, format_amount, to_amount
from .transaction_store import TransactionStore

logger = logging.getLogger(__name__)

MAX_REFERENCE_ATTEMPTS = 3
SUCCESS_PATH = "/api/payu/success"
FAILURE_PATH = "/api/payu/failure"


def generate_reference_id() -> str:
    """Reference id like TXN1718000000000A1B2C3D4 (24 chars, PayU allows 25)."""
    return f"TXN{int(time.time() * 1000)}{uuid.uuid4().hex[:8].upper()}"


class PaymentIntentService:
    """Service for creating payment intents and reading transactions back."""

    def __init__(
        self,
        settings: Settings,
        store: TransactionStore,
        gateway: GatewayClient,
        customers: CustomerStore | None = None,
        signer: HashSigner | None = None,
    ) -> None:
        """Initialize the intent service.

        Args:
            settings: Merchant configuration
            store: Transaction persistence
            gateway: Gateway client used for initiation
            customers: Optional customer persistence; skipped when None or
                when ``settings.persist_customers`` is off
            signer: Hash signer. Defaults to one built from the settings.
        """
        self.settings = settings
        self.store = store
        self.gateway = gateway
        self.customers = customers
        self.signer = signer or HashSigner(settings.merchant_key, settings.merchant_salt)

    def create_intent(
        self,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        amount: Any,
    ) -> IntentResult:
        """Create a pending transaction and a gateway-ready payment payload.

        Args:
            customer_name: Payer's first name
            customer_email: Payer's email
            customer_phone: Payer's phone number
            amount: Amount in rupees; coerced to two decimal places

        Returns:
            IntentResult with the new reference id and the signed form

        Raises:
            ConfigurationError: If merchant credentials are missing
            InvalidRequestError: If amount is not positive or name/email are empty
            GatewayError: If the gateway rejected the initiation; the
                transaction stays pending
        """
        self.settings.require_credentials()
        value = to_amount(amount)
        if not customer_name or not customer_email:
            raise InvalidRequestError(
                ErrorCode.INVALID_REQUEST,
                details={"message": "customer_name and customer_email are required"},
            )

        amount_text = format_amount(value)
        product_info = (
            f"{self.settings.product_description} for {amount_text} {self.settings.currency}"
        )

        transaction, payload = self._persist_pending(
            value, product_info, customer_name, customer_email, customer_phone or ""
        )
        reference_id = transaction.reference_id

        if self.customers is not None and self.settings.persist_customers:
            self._link_customer(transaction, customer_name, customer_email, customer_phone)

        try:
            handoff = self.gateway.initiate(payload)
        except GatewayError as exc:
            details = dict(exc.details or {})
            details["reference_id"] = reference_id
            exc.details = details
            log_payment_operation(
                logger,
                "create_intent",
                reference_id=reference_id,
                amount=amount_text,
                status=TransactionStatus.PENDING.value,
                error=details.get("message", exc.message),
            )
            raise

        log_payment_operation(
            logger,
            "create_intent",
            reference_id=reference_id,
            amount=amount_text,
            status=TransactionStatus.PENDING.value,
        )
        return IntentResult(
            reference_id=reference_id,
            amount=value,
            status=TransactionStatus.PENDING,
            action_url=handoff.action_url,
            form_fields=handoff.form_fields,
            redirect_url=handoff.redirect_url,
        )

    def get_transaction(self, reference_id: str) -> Transaction:
        """Get a transaction by reference id.

        Raises:
            NotFoundError: If no transaction has this reference id
        """
        transaction = self.store.find_by_reference(reference_id)
        if transaction is None:
            raise NotFoundError(details={"reference_id": reference_id})
        return transaction

    def _persist_pending(
        self,
        amount: Any,
        product_info: str,
        first_name: str,
        email: str,
        phone: str,
    ) -> tuple[Transaction, dict[str, str]]:
        """Sign and store a pending transaction, regenerating the id on collision."""
        for _ in range(MAX_REFERENCE_ATTEMPTS):
            reference_id = generate_reference_id()
            payload = self._build_payload(
                reference_id, amount, product_info, first_name, email, phone
            )
            transaction = Transaction(
                reference_id=reference_id,
                amount=amount,
                currency=self.settings.currency,
                product_info=product_info,
                status=TransactionStatus.PENDING,
                created_at=dt.datetime.now(dt.UTC),
            )
            if self.store.create(transaction):
                return transaction, payload
            logger.warning("Reference id collision on %s, regenerating", reference_id)

        raise InvalidRequestError(
            ErrorCode.INVALID_REQUEST,
            details={"message": "Could not allocate a unique reference id"},
        )

    def _build_payload(
        self,
        reference_id: str,
        amount: Any,
        product_info: str,
        first_name: str,
        email: str,
        phone: str,
    ) -> dict[str, str]:
        """PayU initiation form fields, hash included."""
        signature = self.signer.sign_payment_request(
            reference_id=reference_id,
            amount=amount,
            product_info=product_info,
            first_name=first_name,
            email=email,
        )
        base_url = self.settings.public_base_url
        return {
            "key": self.settings.merchant_key,
            "txnid": reference_id,
            "amount": format_amount(amount),
            "productinfo": product_info,
            "firstname": first_name,
            "email": email,
            "phone": phone,
            "currency": self.settings.currency,
            "surl": f"{base_url}{SUCCESS_PATH}",
            "furl": f"{base_url}{FAILURE_PATH}",
            "hash": signature,
        }

    def _link_customer(
        self,
        transaction: Transaction,
        name: str,
        email: str,
        phone: str,
    ) -> None:
        try:
            customer = self.customers.link_transaction(  # type: ignore[union-attr]
                name=name,
                email=email,
                contact=phone or "",
                reference_id=transaction.reference_id,
            )
            self.store.update_if_status(
                transaction.reference_id,
                TransactionStatus.PENDING,
                {"customer_id": customer.customer_id},
            )
        except (ClientError, BotoCoreError):
            # The intent proceeds unlinked; the transaction row is already traceable
            logger.exception("Failed to link customer for %s", transaction.reference_id)
