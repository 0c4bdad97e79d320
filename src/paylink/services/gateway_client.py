"""Outbound calls to the PayU gateway.

Two calls leave this process:
- payment initiation, a form POST to ``{gateway_base_url}/_payment``
- status queries, a form POST to the reporting API
  ``{info_base_url}/merchant/postservice.php?form=2``

Both carry the configured timeout and are attempted exactly once.
"""

import html
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import requests

from paylink.config import Settings
from paylink.models import GatewayError, GatewayHandoff

logger = logging.getLogger(__name__)

PAYMENT_PATH = "/_payment"
POSTSERVICE_PATH = "/merchant/postservice.php?form=2"


class GatewayClient(Protocol):
    """Gateway operations the reconciliation core depends on."""

    def initiate(self, payload: Mapping[str, str]) -> GatewayHandoff:
        """Hand a signed initiation payload to the gateway.

        Raises:
            GatewayError: If the gateway rejects the payload or is unreachable
        """
        ...

    def query_status(self, signed_query: Mapping[str, str]) -> dict[str, Any]:
        """Run a signed reporting query and return the decoded JSON body.

        Raises:
            GatewayError: On transport failure, non-2xx status or invalid JSON
        """
        ...


class PayUClient:
    """GatewayClient for PayU on top of ``requests``.

    Usage:
        client = PayUClient(settings)
        handoff = client.initiate(form_fields)
    """

    def __init__(
        self, settings: Settings, session: requests.Session | None = None
    ) -> None:
        self.settings = settings
        self._session = session or requests.Session()

    @property
    def payment_url(self) -> str:
        return f"{self.settings.gateway_base_url}{PAYMENT_PATH}"

    @property
    def postservice_url(self) -> str:
        return f"{self.settings.info_base_url}{POSTSERVICE_PATH}"

    def initiate(self, payload: Mapping[str, str]) -> GatewayHandoff:
        """POST the initiation form without following redirects.

        PayU answers a valid request with a redirect to its hosted payment
        page. A 200 answer is accepted too; the browser then posts
        ``form_fields`` to ``action_url`` itself.
        """
        form_fields = {k: str(v) for k, v in payload.items()}
        reference_id = form_fields.get("txnid", "")
        try:
            resp = self._session.post(
                self.payment_url,
                data=form_fields,
                allow_redirects=False,
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as exc:
            logger.error("PayU initiation failed for %s: %s", reference_id, exc)
            raise GatewayError(
                details={"reference_id": reference_id, "message": str(exc)}
            ) from exc

        if resp.is_redirect:
            return GatewayHandoff(
                action_url=self.payment_url,
                form_fields=form_fields,
                redirect_url=resp.headers.get("Location"),
            )
        if resp.status_code != 200:
            logger.error(
                "PayU initiation for %s returned HTTP %s", reference_id, resp.status_code
            )
            raise GatewayError(
                details={
                    "reference_id": reference_id,
                    "message": f"HTTP {resp.status_code}",
                }
            )
        return GatewayHandoff(action_url=self.payment_url, form_fields=form_fields)

    def query_status(self, signed_query: Mapping[str, str]) -> dict[str, Any]:
        try:
            resp = self._session.post(
                self.postservice_url,
                data=dict(signed_query),
                headers={"Accept": "application/json"},
                timeout=self.settings.request_timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as exc:
            raise GatewayError(details={"message": str(exc)}) from exc
        except ValueError as exc:
            raise GatewayError(details={"message": "Invalid JSON from gateway"}) from exc

        if not isinstance(body, dict):
            raise GatewayError(details={"message": "Unexpected gateway response shape"})
        return body


def render_payment_form(handoff: GatewayHandoff) -> str:
    """Self-submitting HTML form that posts ``handoff`` to the gateway."""
    inputs = "\n".join(
        f'    <input type="hidden" name="{html.escape(name)}" value="{html.escape(value)}">'
        for name, value in handoff.form_fields.items()
    )
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<body onload=\"document.forms['payu'].submit()\">\n"
        f'  <form name="payu" method="post" action="{html.escape(handoff.action_url)}">\n'
        f"{inputs}\n"
        '    <noscript><button type="submit">Continue to payment</button></noscript>\n'
        "  </form>\n"
        "</body>\n"
        "</html>\n"
    )
