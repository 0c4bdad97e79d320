"""Append-only audit log of inbound callbacks."""

import datetime as dt
import logging
import threading
from typing import TYPE_CHECKING, Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from paylink.models import CallbackEvent, WebhookRecord

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)


class WebhookStore(Protocol):
    """Audit sink. ``append`` never raises into the caller's main path."""

    def append(self, record: WebhookRecord) -> None:
        ...


def _stringify(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _stringify(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stringify(v) for v in value]
    if value is None or isinstance(value, (str, bool)):
        return value
    return str(value)


class DynamoWebhookStore:
    """WebhookStore backed by the ``webhook-records`` DynamoDB table."""

    TABLE = "webhook-records"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def append(self, record: WebhookRecord) -> None:
        item: dict[str, Any] = {
            "record_id": record.record_id,
            "event_type": record.event_type.value,
            "verified": record.verified,
            "raw_payload": _stringify(record.raw_payload),
            "normalized_payload": _stringify(record.normalized_payload),
            "received_at": record.received_at.isoformat(),
        }
        # GSI key attributes cannot hold empty strings
        if record.reference_id:
            item["reference_id"] = record.reference_id
        try:
            self.db.put_item(
                self.TABLE,
                item,
                condition_expression="attribute_not_exists(record_id)",
            )
        except (ClientError, BotoCoreError):
            # Audit writes must not fail callback processing
            logger.exception(
                "Failed to append webhook record %s for %s",
                record.record_id,
                record.reference_id or "<no reference>",
            )

    def list_for_reference(self, reference_id: str) -> list[WebhookRecord]:
        """All records for a reference id, via the reference_id-index GSI."""
        items = self.db.query_by_gsi(
            self.TABLE, "reference_id-index", "reference_id", reference_id
        )
        return [self._item_to_record(item) for item in items]

    def _item_to_record(self, item: dict[str, Any]) -> WebhookRecord:
        """Convert DynamoDB item to WebhookRecord model."""
        return WebhookRecord(
            record_id=item["record_id"],
            event_type=CallbackEvent(item["event_type"]),
            reference_id=item.get("reference_id", ""),
            verified=bool(item["verified"]),
            raw_payload=item.get("raw_payload", {}),
            normalized_payload=item.get("normalized_payload", {}),
            received_at=dt.datetime.fromisoformat(item["received_at"]),
        )


class InMemoryWebhookStore:
    """Process-local WebhookStore for development and tests."""

    def __init__(self) -> None:
        self.records: list[WebhookRecord] = []
        self._lock = threading.Lock()

    def append(self, record: WebhookRecord) -> None:
        with self._lock:
            self.records.append(record)

    def list_for_reference(self, reference_id: str) -> list[WebhookRecord]:
        with self._lock:
            return [r for r in self.records if r.reference_id == reference_id]
