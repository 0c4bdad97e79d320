"""FastAPI dependency injection providers for the reconciliation services.

Settings are read once and the service bundle is built once per process
(``lru_cache``). Route handlers depend on the narrow providers below, which
all resolve through ``get_services`` so a test can swap the whole bundle with
``app.dependency_overrides[get_services]``.

Service Dependency Graph:
    Settings (get_settings)
        └── Services (build_services)
                ├── Stores (DynamoDB or in-memory)
                ├── PayUClient
                ├── PaymentIntentService
                ├── CallbackProcessor
                └── VerificationClient

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from fastapi import Depends

from paylink.config import Settings, get_settings
from paylink.services import (
    CallbackProcessor,
    PaymentIntentService,
    Services,
    VerificationClient,
    build_services,
)


@lru_cache
def get_services() -> Services:
    """Get the cached service bundle built from process settings."""
    return build_services(get_settings())


def get_app_settings(services: Services = Depends(get_services)) -> Settings:
    return services.settings


def get_intent_service(
    services: Services = Depends(get_services),
) -> PaymentIntentService:
    return services.intents


def get_callback_processor(
    services: Services = Depends(get_services),
) -> CallbackProcessor:
    return services.callbacks


def get_verification_client(
    services: Services = Depends(get_services),
) -> VerificationClient:
    return services.verification


def reset_services() -> None:
    """Clear all cached service instances and settings.

    Also resets the underlying DynamoDB singleton.

    Example:
        @pytest.fixture(autouse=True)
        def reset_state():
            yield
            reset_services()
    """
    from paylink.services.dynamodb import reset_dynamodb_service
    from paylink.services.ssm_service import get_ssm_service

    get_services.cache_clear()
    get_settings.cache_clear()
    get_ssm_service.cache_clear()

    reset_dynamodb_service()
