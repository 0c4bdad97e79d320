"""Enumeration types for payment reconciliation models."""

from enum import Enum


class TransactionStatus(str, Enum):
    """Status of a payment transaction.

    ERROR is never persisted. It marks a verification result whose outcome is
    unknown (timeout, transport failure) and should be retried later.
    """

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionStatus.SUCCESS, TransactionStatus.FAILED)


class CallbackOutcome(str, Enum):
    """Outcome declared by the callback endpoint that received the payload."""

    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def target_status(self) -> TransactionStatus:
        if self is CallbackOutcome.SUCCESS:
            return TransactionStatus.SUCCESS
        return TransactionStatus.FAILED


class CallbackEvent(str, Enum):
    """Event type recorded on every WebhookRecord."""

    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILURE = "payment_failure"
    WEBHOOK = "webhook"
    VERIFICATION = "verification"


class GatewayMode(str, Enum):
    """Gateway operating mode."""

    TEST = "test"
    LIVE = "live"


class StoreBackend(str, Enum):
    """Persistence backend for transactions, customers and webhook records."""

    DYNAMODB = "dynamodb"
    MEMORY = "memory"


# PayU status vocabulary mapped onto internal statuses. Anything not listed
# (pending, in progress, initiated, ...) is treated as still pending.
GATEWAY_STATUS_MAP: dict[str, TransactionStatus] = {
    "success": TransactionStatus.SUCCESS,
    "captured": TransactionStatus.SUCCESS,
    "failure": TransactionStatus.FAILED,
    "failed": TransactionStatus.FAILED,
    "dropped": TransactionStatus.FAILED,
    "bounced": TransactionStatus.FAILED,
    "usercancelled": TransactionStatus.FAILED,
    "cancelled": TransactionStatus.FAILED,
}


def map_gateway_status(status: str | None) -> TransactionStatus:
    """Map a gateway status string onto the internal status vocabulary.

    Args:
        status: Raw status as reported by the gateway (case-insensitive)

    Returns:
        SUCCESS or FAILED for terminal gateway statuses, PENDING otherwise
    """
    if not status:
        return TransactionStatus.PENDING
    return GATEWAY_STATUS_MAP.get(status.strip().lower(), TransactionStatus.PENDING)
