"""API routes package.

Routers are registered in main.py under the /api/payu prefix:

- payments: intents, redirect flow, verification, status lookups, health
- callbacks: surl/furl browser callbacks and server-to-server webhooks
"""

from paylink_api.routes.callbacks import router as callbacks_router
from paylink_api.routes.payments import router as payments_router

__all__ = ["callbacks_router", "payments_router"]
