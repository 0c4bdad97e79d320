"""Terminal status transitions for transactions.

    pending --success--> success
    pending --failure--> failed

Terminal states are absorbing. The only write path is the store's conditional
``update_if_status`` from PENDING, so the first transition wins and any later
or concurrent attempt is classified instead of applied.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from paylink.models import Transaction, TransactionStatus

from .transaction_store import TransactionStore

logger = logging.getLogger(__name__)


class TransitionResult(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    DIVERGENT = "divergent"
    AMOUNT_MISMATCH = "amount_mismatch"
    NOT_TERMINAL = "not_terminal"


@dataclass(frozen=True)
class Transition:
    """Outcome of one transition attempt."""

    result: TransitionResult
    status: TransactionStatus
    gateway_payment_id: str | None = None

    @property
    def applied(self) -> bool:
        return self.result is TransitionResult.APPLIED

    @property
    def review_required(self) -> bool:
        return self.result in (
            TransitionResult.DIVERGENT,
            TransitionResult.AMOUNT_MISMATCH,
        )


def amounts_match(stored: Decimal, reported: str | None) -> bool:
    """Compare a stored amount with a gateway-reported amount string."""
    if not reported:
        return False
    try:
        return Decimal(reported).quantize(Decimal("0.01")) == stored
    except ArithmeticError:
        return False


class StatusTransitioner:
    """Applies terminal transitions through the store's conditional update."""

    def __init__(self, store: TransactionStore) -> None:
        self.store = store

    def transition(
        self,
        transaction: Transaction,
        target_status: TransactionStatus,
        *,
        gateway_payment_id: str | None,
        raw_payload: dict[str, Any],
        reported_amount: str | None = None,
    ) -> Transition:
        """Move ``transaction`` from PENDING to ``target_status``.

        Args:
            transaction: Transaction as last read from the store
            target_status: SUCCESS or FAILED; anything else is not applied
            gateway_payment_id: Gateway's payment id for the outcome
            raw_payload: Payload that drove the transition
            reported_amount: Amount the gateway reported. Required to match the
                stored amount before a SUCCESS transition is applied.

        Returns:
            Transition describing what happened and the resulting status
        """
        reference_id = transaction.reference_id

        if not target_status.is_terminal:
            return Transition(
                TransitionResult.NOT_TERMINAL,
                transaction.status,
                transaction.gateway_payment_id,
            )

        if transaction.status.is_terminal:
            return self._classify(transaction, target_status)

        if target_status is TransactionStatus.SUCCESS and not amounts_match(
            transaction.amount, reported_amount
        ):
            logger.warning(
                "Amount mismatch for %s: stored %s, gateway reported %r. "
                "Leaving transaction pending for review",
                reference_id,
                transaction.amount,
                reported_amount,
            )
            return Transition(TransitionResult.AMOUNT_MISMATCH, transaction.status)

        updated = self.store.update_if_status(
            reference_id,
            TransactionStatus.PENDING,
            {
                "status": target_status,
                "gateway_payment_id": gateway_payment_id or None,
                "raw_callback_payload": raw_payload,
                "updated_at": dt.datetime.now(dt.UTC),
            },
        )
        if updated:
            logger.info("Transaction %s -> %s", reference_id, target_status.value)
            return Transition(TransitionResult.APPLIED, target_status, gateway_payment_id)

        # Lost the conditional write; classify against whatever won
        current = self.store.find_by_reference(reference_id)
        if current is None or not current.status.is_terminal:
            return Transition(TransitionResult.NOT_TERMINAL, transaction.status)
        return self._classify(current, target_status)

    def _classify(
        self, current: Transaction, target_status: TransactionStatus
    ) -> Transition:
        if current.status == target_status:
            return Transition(
                TransitionResult.DUPLICATE, current.status, current.gateway_payment_id
            )
        logger.warning(
            "Divergent outcome for %s: stored %s, received %s. Keeping stored status",
            current.reference_id,
            current.status.value,
            target_status.value,
        )
        return Transition(
            TransitionResult.DIVERGENT, current.status, current.gateway_payment_id
        )
