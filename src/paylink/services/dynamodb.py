"""Thin boto3 layer shared by the DynamoDB-backed stores.

Tables are addressed by their short name (``transactions``, ``customers``,
``webhook-records``) and resolved against a deployment prefix. Conditional
writes report a failed condition as a return value so callers can treat a
lost race as an ordinary outcome; every other ``ClientError`` propagates.
"""

import os
from functools import lru_cache
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

CONDITION_FAILED = "ConditionalCheckFailedException"


def _condition_failed(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == CONDITION_FAILED


@lru_cache(maxsize=4)
def get_dynamodb_service(table_prefix: str | None = None) -> "DynamoDBService":
    """Shared DynamoDBService per table prefix."""
    return DynamoDBService(table_prefix)


def reset_dynamodb_service() -> None:
    """Drop cached services so tests can rebuild them inside ``mock_aws``."""
    get_dynamodb_service.cache_clear()


class DynamoDBService:
    """Prefix-aware access to the payment tables."""

    def __init__(
        self, table_prefix: str | None = None, region_name: str | None = None
    ) -> None:
        """
        Args:
            table_prefix: Deployment prefix. Falls back to DYNAMODB_TABLE_PREFIX
                and then to ``paylink-<ENVIRONMENT>``.
            region_name: AWS region; boto3's default resolution when omitted
        """
        self.table_prefix = table_prefix or os.getenv(
            "DYNAMODB_TABLE_PREFIX", f"paylink-{os.getenv('ENVIRONMENT', 'dev')}"
        )
        self._resource = boto3.resource("dynamodb", region_name=region_name)

    def table_name(self, table: str) -> str:
        return f"{self.table_prefix}-{table}"

    def table(self, table: str) -> Any:
        return self._resource.Table(self.table_name(table))

    def get_item(
        self, table: str, key: dict[str, Any], consistent_read: bool = False
    ) -> dict[str, Any] | None:
        response = self.table(table).get_item(Key=key, ConsistentRead=consistent_read)
        return response.get("Item")

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> bool:
        """Write ``item``; False when ``condition_expression`` rejects it."""
        params: dict[str, Any] = {"Item": item}
        if condition_expression:
            params["ConditionExpression"] = condition_expression
        try:
            self.table(table).put_item(**params)
        except ClientError as e:
            if _condition_failed(e):
                return False
            raise
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        values: dict[str, Any],
        names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply an update expression.

        Returns:
            The item's attributes after the update, or None when
            ``condition_expression`` did not hold
        """
        params: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": values,
            "ReturnValues": "ALL_NEW",
        }
        if names:
            params["ExpressionAttributeNames"] = names
        if condition_expression:
            params["ConditionExpression"] = condition_expression
        try:
            response = self.table(table).update_item(**params)
        except ClientError as e:
            if _condition_failed(e):
                return None
            raise
        return response.get("Attributes")

    def query_by_gsi(
        self, table: str, index_name: str, attribute: str, value: str
    ) -> list[dict[str, Any]]:
        """Every item whose ``attribute`` equals ``value`` on a GSI.

        Follows ``LastEvaluatedKey`` so a busy reference id (many retried
        callbacks) is returned in full.
        """
        params: dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(attribute).eq(value),
        }
        items: list[dict[str, Any]] = []
        while True:
            response = self.table(table).query(**params)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            params["ExclusiveStartKey"] = last_key
