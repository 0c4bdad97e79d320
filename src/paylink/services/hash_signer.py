"""PayU SHA-512 request and response hashing.

Payment request hash:
    key|txnid|amount|productinfo|firstname|email|udf1|udf2|udf3|udf4|udf5||||||SALT

Response (callback) hash, computed in reverse order and including the status:
    [additionalCharges|]SALT|status||||||udf5|udf4|udf3|udf2|udf1|email|firstname|productinfo|amount|txnid|key

Reporting API hash:
    key|command|var1|SALT

All functions here are pure: same input, same digest.
"""

import hashlib
import hmac
from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from paylink.models.callback import CallbackPayload
from paylink.models.errors import ErrorCode, InvalidRequestError

DELIMITER = "|"
UDF_COUNT = 5
# PayU reserves udf6..udf10; they are always signed as empty strings.
PLACEHOLDER_SLOTS = 5

_CENT = Decimal("0.01")


def to_amount(value: Any) -> Decimal:
    """Coerce ``value`` to a positive Decimal with two decimal places.

    Raises:
        InvalidRequestError: If the value is not numeric or not positive.
    """
    try:
        amount = Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidRequestError(
            ErrorCode.INVALID_AMOUNT, details={"amount": str(value)}
        ) from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidRequestError(ErrorCode.INVALID_AMOUNT, details={"amount": str(value)})
    return amount


def format_amount(value: Any) -> str:
    """Format an amount exactly as it is signed, e.g. ``100`` -> ``"100.00"``."""
    return f"{to_amount(value):.2f}"


def compute_hash(fields: Iterable[str], secret: str) -> str:
    """SHA-512 hex digest of ``fields`` followed by ``secret``, pipe-joined."""
    hash_string = DELIMITER.join([*fields, secret])
    return hashlib.sha512(hash_string.encode("utf-8")).hexdigest()


def _udfs(udf: Sequence[str | None]) -> list[str]:
    values = [(value or "") for value in udf[:UDF_COUNT]]
    return values + [""] * (UDF_COUNT - len(values))


class HashSigner:
    """Signs outbound requests and verifies inbound callbacks for one merchant."""

    def __init__(self, key: str, salt: str) -> None:
        self._key = key
        self._salt = salt

    def payment_request_fields(
        self,
        *,
        reference_id: str,
        amount: Any,
        product_info: str,
        first_name: str,
        email: str,
        udf: Sequence[str | None] = (),
    ) -> tuple[str, ...]:
        """Ordered field tuple that precedes the salt in a request hash."""
        return (
            self._key,
            reference_id,
            format_amount(amount),
            product_info or "",
            first_name or "",
            email or "",
            *_udfs(udf),
            *([""] * PLACEHOLDER_SLOTS),
        )

    def sign(self, fields: Iterable[str]) -> str:
        return compute_hash(fields, self._salt)

    def sign_payment_request(self, **kwargs: Any) -> str:
        """Hash for a payment initiation. Accepts payment_request_fields kwargs."""
        return self.sign(self.payment_request_fields(**kwargs))

    def callback_signature(self, payload: CallbackPayload | Mapping[str, Any]) -> str:
        """Expected response hash for a callback payload.

        The merchant key comes from configuration, not from the payload, so a
        payload claiming another merchant's key never verifies.
        """
        if not isinstance(payload, CallbackPayload):
            payload = CallbackPayload.from_form(payload)

        fields: list[str] = []
        if payload.additional_charges:
            fields.append(payload.additional_charges)
        fields.extend(
            [
                self._salt,
                payload.status,
                *([""] * PLACEHOLDER_SLOTS),
                *reversed(payload.udfs),
                payload.email,
                payload.first_name,
                payload.product_info,
                payload.amount,
                payload.reference_id,
                self._key,
            ]
        )
        hash_string = DELIMITER.join(fields)
        return hashlib.sha512(hash_string.encode("utf-8")).hexdigest()

    def verify(self, payload: CallbackPayload | Mapping[str, Any]) -> bool:
        """Check the payload's claimed hash against the recomputed one."""
        if not isinstance(payload, CallbackPayload):
            payload = CallbackPayload.from_form(payload)
        claimed = payload.signature.strip().lower()
        if not claimed:
            return False
        expected = self.callback_signature(payload)
        # Claims are attacker-controlled and may hold non-ASCII text
        return hmac.compare_digest(
            expected.encode("ascii"), claimed.encode("utf-8", "replace")
        )

    def sign_command(self, command: str, var1: str) -> str:
        """Hash for a reporting API call (verify_payment, check_payment, ...)."""
        return compute_hash((self._key, command, var1), self._salt)


def sign(fields: Sequence[str], secret: str) -> str:
    """Module-level alias of compute_hash for callers without a HashSigner."""
    return compute_hash(fields, secret)


def verify(payload: Mapping[str, Any], key: str, secret: str) -> bool:
    """Verify a raw callback payload for merchant ``key`` / ``secret``."""
    return HashSigner(key, secret).verify(payload)
