"""Service configuration.

Settings are read once from the environment (with an optional SSM Parameter
Store fallback for merchant credentials) and passed explicitly to every
service, so no component looks up global state on its own.

Usage:
    from paylink.config import get_settings

    settings = get_settings()
    settings.require_credentials()
"""

import logging
import os
from collections.abc import Mapping
from functools import lru_cache

from pydantic import BaseModel, Field

from paylink.models.enums import GatewayMode, StoreBackend
from paylink.models.errors import ConfigurationError

logger = logging.getLogger(__name__)

GATEWAY_BASE_URLS: dict[GatewayMode, str] = {
    GatewayMode.TEST: "https://test.payu.in",
    GatewayMode.LIVE: "https://secure.payu.in",
}

INFO_BASE_URLS: dict[GatewayMode, str] = {
    GatewayMode.TEST: "https://test.payu.in",
    GatewayMode.LIVE: "https://info.payu.in",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _parse_mode(value: str | None) -> GatewayMode:
    if value and value.strip().lower() in ("production", "prod", "live"):
        return GatewayMode.LIVE
    return GatewayMode.TEST


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


class Settings(BaseModel):
    """Merchant credentials, endpoints and behaviour switches."""

    merchant_key: str = Field(default="", description="PayU merchant key")
    merchant_salt: str = Field(default="", repr=False, description="PayU merchant salt")
    mode: GatewayMode = GatewayMode.TEST
    gateway_base_url: str = Field(default="", description="Base URL for payment initiation")
    info_base_url: str = Field(default="", description="Base URL for the verification API")
    public_base_url: str = Field(
        default="http://localhost:8080",
        description="This service's public base URL, used for surl/furl",
    )
    frontend_base_url: str = Field(
        default="http://localhost:3000",
        description="Merchant front-end base URL for final redirects",
    )
    currency: str = "INR"
    product_description: str = "Payment for AI chat service"
    request_timeout: float = Field(default=10.0, gt=0)
    reject_invalid_signatures: bool = False
    persist_customers: bool = True
    store_backend: StoreBackend = StoreBackend.DYNAMODB
    table_prefix: str | None = None

    def model_post_init(self, __context: object) -> None:
        if not self.gateway_base_url:
            self.gateway_base_url = GATEWAY_BASE_URLS[self.mode]
        if not self.info_base_url:
            self.info_base_url = INFO_BASE_URLS[self.mode]
        self.gateway_base_url = self.gateway_base_url.rstrip("/")
        self.info_base_url = self.info_base_url.rstrip("/")
        self.public_base_url = self.public_base_url.rstrip("/")
        self.frontend_base_url = self.frontend_base_url.rstrip("/")

    @property
    def has_credentials(self) -> bool:
        return bool(self.merchant_key and self.merchant_salt)

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless both key and salt are set."""
        if not self.has_credentials:
            raise ConfigurationError(
                details={"message": "PAYU_MERCHANT_KEY and PAYU_MERCHANT_SALT are required"}
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        When merchant credentials are absent and PAYU_SSM_PREFIX is set, the
        key and salt are fetched from SSM Parameter Store under that prefix.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            Settings instance
        """
        env = os.environ if environ is None else environ

        key = env.get("PAYU_MERCHANT_KEY", "")
        salt = env.get("PAYU_MERCHANT_SALT", "")
        ssm_prefix = env.get("PAYU_SSM_PREFIX")
        if (not key or not salt) and ssm_prefix:
            key, salt = _credentials_from_ssm(ssm_prefix, key, salt)

        settings = cls(
            merchant_key=key,
            merchant_salt=salt,
            mode=_parse_mode(env.get("PAYU_MODE")),
            gateway_base_url=env.get("PAYU_BASE_URL", ""),
            info_base_url=env.get("PAYU_INFO_BASE_URL", ""),
            public_base_url=env.get("BASE_URL", "http://localhost:8080"),
            frontend_base_url=env.get("FRONTEND_BASE_URL", "http://localhost:3000"),
            currency=env.get("PAYU_CURRENCY", "INR"),
            product_description=env.get(
                "PAYU_PRODUCT_DESCRIPTION", "Payment for AI chat service"
            ),
            request_timeout=float(env.get("PAYU_REQUEST_TIMEOUT", "10")),
            reject_invalid_signatures=_parse_bool(
                env.get("REJECT_INVALID_SIGNATURES"), False
            ),
            persist_customers=_parse_bool(env.get("PERSIST_CUSTOMERS"), True),
            store_backend=StoreBackend(env.get("STORE_BACKEND", "dynamodb").lower()),
            table_prefix=env.get("DYNAMODB_TABLE_PREFIX") or None,
        )

        if not settings.has_credentials:
            logger.warning(
                "PayU credentials not configured. Set PAYU_MERCHANT_KEY and "
                "PAYU_MERCHANT_SALT in the environment"
            )
        return settings


def _credentials_from_ssm(prefix: str, key: str, salt: str) -> tuple[str, str]:
    from paylink.services.ssm_service import SSMServiceError, get_ssm_service

    try:
        return get_ssm_service().merchant_credentials(prefix, key=key, salt=salt)
    except SSMServiceError as e:
        raise ConfigurationError(details={"message": str(e)}) from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide Settings (read from the environment once)."""
    return Settings.from_env()
