"""PayU merchant credentials from SSM Parameter Store.

Deployments that keep the merchant key and salt out of the environment store
them as SecureStrings under ``<PAYU_SSM_PREFIX>/merchant_key`` and
``<PAYU_SSM_PREFIX>/merchant_salt``.
"""

import logging
from collections.abc import Iterable
from functools import lru_cache
from typing import Any

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

MERCHANT_KEY_PARAM = "merchant_key"
MERCHANT_SALT_PARAM = "merchant_salt"


class SSMServiceError(Exception):
    """Raised when merchant parameters cannot be read."""


class SSMService:
    """Batch reader for decrypted parameters, cached per process."""

    def __init__(self, client: Any = None) -> None:
        self._client = client or boto3.client("ssm")
        self._cache: dict[str, str] = {}

    def get_parameters(self, names: Iterable[str]) -> dict[str, str]:
        """Decrypted values for ``names``, fetched in one GetParameters call.

        Raises:
            SSMServiceError: If any parameter is missing or the call is denied
        """
        wanted = list(dict.fromkeys(names))
        missing = [n for n in wanted if n not in self._cache]
        if missing:
            logger.info("Fetching SSM parameters: %s", ", ".join(missing))
            try:
                response = self._client.get_parameters(Names=missing, WithDecryption=True)
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code", "Unknown")
                if code == "AccessDeniedException":
                    raise SSMServiceError(
                        f"Access denied to SSM parameters {missing}. "
                        "Check IAM permissions for ssm:GetParameters."
                    ) from e
                raise SSMServiceError(f"Failed to retrieve SSM parameters: {e}") from e

            invalid = response.get("InvalidParameters", [])
            if invalid:
                raise SSMServiceError(f"SSM parameter not found: {', '.join(invalid)}")
            for parameter in response.get("Parameters", []):
                self._cache[parameter["Name"]] = parameter["Value"]

        return {n: self._cache[n] for n in wanted}

    def merchant_credentials(
        self, prefix: str, *, key: str = "", salt: str = ""
    ) -> tuple[str, str]:
        """Fill in whichever of ``key``/``salt`` is empty from ``prefix``."""
        prefix = prefix.rstrip("/")
        names = {
            field: f"{prefix}/{param}"
            for field, param, present in (
                ("key", MERCHANT_KEY_PARAM, key),
                ("salt", MERCHANT_SALT_PARAM, salt),
            )
            if not present
        }
        values = self.get_parameters(names.values())
        return (
            key or values[names["key"]],
            salt or values[names["salt"]],
        )

    def clear_cache(self) -> None:
        self._cache.clear()


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    return SSMService()
