"""Pydantic models for PayU payment reconciliation."""

from .callback import (
    CALLBACK_TYPES,
    CallbackPayload,
    FailureCallback,
    SuccessCallback,
    WebhookCallback,
    WebhookRecord,
    parse_callback,
)
from .enums import (
    CallbackEvent,
    CallbackOutcome,
    GatewayMode,
    StoreBackend,
    TransactionStatus,
    map_gateway_status,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    ConfigurationError,
    ErrorCode,
    ErrorResponse,
    GatewayError,
    InvalidRequestError,
    NotFoundError,
    PaymentError,
    SignatureError,
)
from .results import GatewayHandoff, IntentResult, RedirectTarget, StatusResult
from .transaction import Customer, Transaction

__all__ = [
    # Enums
    "CallbackEvent",
    "CallbackOutcome",
    "GatewayMode",
    "StoreBackend",
    "TransactionStatus",
    "map_gateway_status",
    # Entities
    "Customer",
    "Transaction",
    "WebhookRecord",
    # Callbacks
    "CALLBACK_TYPES",
    "CallbackPayload",
    "FailureCallback",
    "SuccessCallback",
    "WebhookCallback",
    "parse_callback",
    # Results
    "GatewayHandoff",
    "IntentResult",
    "RedirectTarget",
    "StatusResult",
    # Errors
    "ConfigurationError",
    "ErrorCode",
    "ErrorResponse",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "GatewayError",
    "InvalidRequestError",
    "NotFoundError",
    "PaymentError",
    "SignatureError",
]
