"""Per-request correlation ids.

Browser callbacks and gateway webhooks arrive from outside our control, so an
inbound id is only reused when it looks like an id (short, no whitespace or
control characters). Otherwise a fresh one is generated. The id is echoed back
in ``X-Correlation-ID``.
"""

import re

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from paylink.utils.logging import clear_correlation_id, set_correlation_id

CORRELATION_ID_HEADER = "X-Correlation-ID"
# Load balancers and API gateways commonly stamp this one
REQUEST_ID_HEADER = "X-Request-ID"

_VALID_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def inbound_correlation_id(request: Request) -> str | None:
    for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
        value = request.headers.get(header)
        if value and _VALID_ID.match(value):
            return value
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id to the request context and echoes it back."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = set_correlation_id(inbound_correlation_id(request))
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
