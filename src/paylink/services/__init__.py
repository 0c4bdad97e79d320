"""Reconciliation services and their persistence backends."""

from dataclasses import dataclass

from paylink.config import Settings
from paylink.models import StoreBackend

from .callback_processor import CallbackProcessor
from .customer_store import CustomerStore, DynamoCustomerStore, InMemoryCustomerStore
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .gateway_client import GatewayClient, PayUClient, render_payment_form
from .hash_signer import HashSigner, compute_hash, format_amount, sign, verify
from .payment_intent import PaymentIntentService
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .state_machine import StatusTransitioner, Transition, TransitionResult
from .transaction_store import (
    DynamoTransactionStore,
    InMemoryTransactionStore,
    TransactionStore,
)
from .verification import VerificationClient
from .webhook_store import DynamoWebhookStore, InMemoryWebhookStore, WebhookStore


@dataclass
class Stores:
    transactions: TransactionStore
    customers: CustomerStore
    webhooks: WebhookStore


@dataclass
class Services:
    """Fully wired services sharing one settings object and one set of stores."""

    settings: Settings
    stores: Stores
    gateway: GatewayClient
    intents: PaymentIntentService
    callbacks: CallbackProcessor
    verification: VerificationClient


def build_stores(settings: Settings) -> Stores:
    """Stores for the configured backend."""
    if settings.store_backend is StoreBackend.MEMORY:
        return Stores(
            transactions=InMemoryTransactionStore(),
            customers=InMemoryCustomerStore(),
            webhooks=InMemoryWebhookStore(),
        )
    db = get_dynamodb_service(settings.table_prefix)
    return Stores(
        transactions=DynamoTransactionStore(db),
        customers=DynamoCustomerStore(db),
        webhooks=DynamoWebhookStore(db),
    )


def build_services(
    settings: Settings,
    stores: Stores | None = None,
    gateway: GatewayClient | None = None,
) -> Services:
    """Wire every service from explicit settings.

    Args:
        settings: Merchant configuration
        stores: Pre-built stores. Defaults to ``build_stores(settings)``.
        gateway: Gateway client. Defaults to a PayUClient.

    Returns:
        Services bundle
    """
    stores = stores or build_stores(settings)
    gateway = gateway or PayUClient(settings)
    signer = HashSigner(settings.merchant_key, settings.merchant_salt)
    return Services(
        settings=settings,
        stores=stores,
        gateway=gateway,
        intents=PaymentIntentService(
            settings, stores.transactions, gateway, stores.customers, signer
        ),
        callbacks=CallbackProcessor(settings, stores.transactions, stores.webhooks, signer),
        verification=VerificationClient(
            settings, stores.transactions, gateway, stores.webhooks, signer
        ),
    )


__all__ = [
    "build_services",
    "build_stores",
    "Services",
    "Stores",
    # Core services
    "CallbackProcessor",
    "PaymentIntentService",
    "StatusTransitioner",
    "Transition",
    "TransitionResult",
    "VerificationClient",
    # Signing
    "HashSigner",
    "compute_hash",
    "format_amount",
    "sign",
    "verify",
    # Gateway
    "GatewayClient",
    "PayUClient",
    "render_payment_form",
    # Persistence
    "CustomerStore",
    "DynamoCustomerStore",
    "DynamoDBService",
    "DynamoTransactionStore",
    "DynamoWebhookStore",
    "InMemoryCustomerStore",
    "InMemoryTransactionStore",
    "InMemoryWebhookStore",
    "TransactionStore",
    "WebhookStore",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    # Secrets
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
]
