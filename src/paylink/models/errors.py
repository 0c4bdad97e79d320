"""Standard error codes and exceptions for the payment reconciliation core.

Every failure the core can signal maps to one ErrorCode. Exceptions carry the
code plus optional details, and convert to ErrorResponse for HTTP bodies.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    CONFIGURATION_MISSING = "ERR_PAY_001"
    INVALID_SIGNATURE = "ERR_PAY_002"
    GATEWAY_UNAVAILABLE = "ERR_PAY_003"
    TRANSACTION_NOT_FOUND = "ERR_PAY_004"
    INVALID_AMOUNT = "ERR_PAY_005"
    INVALID_REQUEST = "ERR_PAY_006"


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.CONFIGURATION_MISSING: "Payment gateway credentials are not configured",
    ErrorCode.INVALID_SIGNATURE: "Callback signature verification failed",
    ErrorCode.GATEWAY_UNAVAILABLE: "Payment gateway request failed",
    ErrorCode.TRANSACTION_NOT_FOUND: "Transaction not found",
    ErrorCode.INVALID_AMOUNT: "Amount must be a positive number",
    ErrorCode.INVALID_REQUEST: "Request is missing required fields",
}

# Recovery suggestions for callers
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.CONFIGURATION_MISSING: "Set PAYU_MERCHANT_KEY and PAYU_MERCHANT_SALT",
    ErrorCode.INVALID_SIGNATURE: "Verify the merchant salt matches the gateway account",
    ErrorCode.GATEWAY_UNAVAILABLE: "Retry later or verify the payment status by reference id",
    ErrorCode.TRANSACTION_NOT_FOUND: "Check the reference id",
    ErrorCode.INVALID_AMOUNT: "Send an amount greater than zero",
    ErrorCode.INVALID_REQUEST: "Check the request parameters and try again",
}


class ErrorResponse(BaseModel):
    """Standard error body returned by the HTTP surface."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class PaymentError(Exception):
    """Base exception raised by the reconciliation core."""

    default_code: ErrorCode = ErrorCode.INVALID_REQUEST

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, str]] = None,
    ):
        self.code = code or self.default_code
        self.message = ERROR_MESSAGES[self.code]
        self.recovery = ERROR_RECOVERY[self.code]
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse."""
        return ErrorResponse.from_code(self.code, self.details)


class ConfigurationError(PaymentError):
    """Merchant credentials or required settings are missing."""

    default_code = ErrorCode.CONFIGURATION_MISSING


class SignatureError(PaymentError):
    """Inbound callback signature did not match."""

    default_code = ErrorCode.INVALID_SIGNATURE


class GatewayError(PaymentError):
    """Downstream gateway call failed or timed out. Retryable."""

    default_code = ErrorCode.GATEWAY_UNAVAILABLE


class NotFoundError(PaymentError):
    """Reference id is not present in the transaction store."""

    default_code = ErrorCode.TRANSACTION_NOT_FOUND


class InvalidRequestError(PaymentError):
    """Caller supplied an invalid amount or missing fields."""

    default_code = ErrorCode.INVALID_REQUEST
