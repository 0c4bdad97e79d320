"""Correlation-id aware logging for payment flows.

A payment is touched by several independent requests: the intent, the
browser callback, the server webhook and any later verification. Each request
carries its own correlation id (``X-Correlation-ID``) and every log line is
prefixed with it; the reference id ties the requests together.

    logger = get_logger(__name__)
    log_payment_operation(logger, "create_intent", reference_id=ref, amount="100.00")
    log_webhook_event(logger, "payment_success", ref, result="applied")
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

NO_CORRELATION_ID = "-"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Callback results worth a human look
_WARNING_RESULTS = frozenset({"duplicate", "divergent", "not_found", "rejected", "review"})


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind ``correlation_id`` (or a fresh uuid4) to the current context."""
    cid = correlation_id or str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` from the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Prefixes each formatted line with ``[correlation_id]``."""

    def format(self, record: logging.LogRecord) -> str:
        cid = getattr(record, "correlation_id", None) or (
            get_correlation_id() or NO_CORRELATION_ID
        )
        return f"[{cid}] {super().format(record)}"


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a single correlation-aware stream handler to the root logger."""
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(handler)


def _emit(
    logger: logging.Logger, level: int, headline: str, context: dict[str, Any]
) -> None:
    fields = " | ".join(
        f"{k}={v}" for k, v in context.items() if k not in ("operation", "event_type")
    )
    message = f"{headline} | {fields}" if fields else headline
    logger.log(level, message, extra=context)


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    reference_id: str | None = None,
    amount: str | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log an outbound payment operation (intent, verification, status query).

    Fields that are None are left out of both the message and the record's
    extras. A non-empty ``error`` logs at ERROR, otherwise INFO.
    """
    context: dict[str, Any] = {"operation": operation}
    for key, value in (
        ("reference_id", reference_id),
        ("amount", amount),
        ("status", status),
        ("error", error),
    ):
        if value is not None:
            context[key] = value
    context.update(extra)

    level = logging.ERROR if error else logging.INFO
    _emit(logger, level, f"Payment operation: {operation}", context)


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    reference_id: str | None,
    *,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one inbound callback and how it was handled.

    ``result`` is one of received, applied, duplicate, divergent, review,
    not_found, rejected or error. Anything but a clean application or receipt
    logs at WARNING, and ``error`` at ERROR.
    """
    context: dict[str, Any] = {
        "event_type": event_type,
        "reference_id": reference_id or "",
    }
    if result:
        context["result"] = result
    if error:
        context["error"] = error
    context.update(extra)

    if result == "error":
        level = logging.ERROR
    elif result in _WARNING_RESULTS:
        level = logging.WARNING
    else:
        level = logging.INFO
    headline = f"Callback event: {event_type} ({reference_id or 'no reference'})"
    _emit(logger, level, headline, context)
