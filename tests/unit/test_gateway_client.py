"""Unit tests for PayUClient with a mocked requests session."""

from unittest.mock import MagicMock

import pytest
import requests

from paylink.config import Settings
from paylink.models import GatewayError, GatewayHandoff
from paylink.services import PayUClient, render_payment_form

FORM = {"key": "k", "txnid": "TXN1", "amount": "100.00", "hash": "abc"}


def _response(status_code: int = 200, **attrs: object) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.is_redirect = attrs.pop("is_redirect", False)
    resp.headers = attrs.pop("headers", {})
    for name, value in attrs.items():
        setattr(resp, name, value)
    return resp


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(settings: Settings, session: MagicMock) -> PayUClient:
    return PayUClient(settings, session=session)


class TestInitiate:
    def test_redirect_becomes_hosted_page_url(
        self, client: PayUClient, session: MagicMock
    ) -> None:
        session.post.return_value = _response(
            302,
            is_redirect=True,
            headers={"Location": "https://test.payu.in/public/#/abc"},
        )

        handoff = client.initiate(FORM)

        assert handoff.redirect_url == "https://test.payu.in/public/#/abc"
        assert handoff.action_url == "https://test.payu.in/_payment"
        assert handoff.form_fields == FORM

    def test_posts_form_without_following_redirects(
        self, client: PayUClient, session: MagicMock, settings: Settings
    ) -> None:
        session.post.return_value = _response(200)

        client.initiate(FORM)

        args, kwargs = session.post.call_args
        assert args[0] == "https://test.payu.in/_payment"
        assert kwargs["data"] == FORM
        assert kwargs["allow_redirects"] is False
        assert kwargs["timeout"] == settings.request_timeout

    def test_ok_without_redirect_returns_form(
        self, client: PayUClient, session: MagicMock
    ) -> None:
        session.post.return_value = _response(200)
        assert client.initiate(FORM).redirect_url is None

    def test_error_status_raises_gateway_error(
        self, client: PayUClient, session: MagicMock
    ) -> None:
        session.post.return_value = _response(500)
        with pytest.raises(GatewayError) as exc_info:
            client.initiate(FORM)
        assert exc_info.value.details["reference_id"] == "TXN1"

    def test_transport_error_raises_gateway_error(
        self, client: PayUClient, session: MagicMock
    ) -> None:
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(GatewayError):
            client.initiate(FORM)


class TestQueryStatus:
    QUERY = {"key": "k", "command": "verify_payment", "var1": "TXN1", "hash": "h"}

    def test_returns_decoded_body(
        self, client: PayUClient, session: MagicMock, settings: Settings
    ) -> None:
        session.post.return_value = _response(200, json=MagicMock(return_value={"status": 1}))

        assert client.query_status(self.QUERY) == {"status": 1}

        args, kwargs = session.post.call_args
        assert args[0] == "https://test.payu.in/merchant/postservice.php?form=2"
        assert kwargs["data"] == self.QUERY
        assert kwargs["timeout"] == settings.request_timeout

    def test_timeout_raises_gateway_error(
        self, client: PayUClient, session: MagicMock
    ) -> None:
        session.post.side_effect = requests.Timeout("read timed out")
        with pytest.raises(GatewayError) as exc_info:
            client.query_status(self.QUERY)
        assert "timed out" in exc_info.value.details["message"]

    def test_http_error_raises_gateway_error(
        self, client: PayUClient, session: MagicMock
    ) -> None:
        resp = _response(503)
        resp.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        session.post.return_value = resp
        with pytest.raises(GatewayError):
            client.query_status(self.QUERY)

    def test_invalid_json_raises_gateway_error(
        self, client: PayUClient, session: MagicMock
    ) -> None:
        session.post.return_value = _response(
            200, json=MagicMock(side_effect=ValueError("no json"))
        )
        with pytest.raises(GatewayError):
            client.query_status(self.QUERY)

    def test_non_object_body_raises_gateway_error(
        self, client: PayUClient, session: MagicMock
    ) -> None:
        session.post.return_value = _response(200, json=MagicMock(return_value=[1]))
        with pytest.raises(GatewayError):
            client.query_status(self.QUERY)


class TestRenderPaymentForm:
    def test_form_posts_escaped_fields(self) -> None:
        html = render_payment_form(
            GatewayHandoff(
                action_url="https://test.payu.in/_payment",
                form_fields={"productinfo": 'AI "chat" <plan>'},
            )
        )
        assert 'action="https://test.payu.in/_payment"' in html
        assert 'value="AI &quot;chat&quot; &lt;plan&gt;"' in html
        assert "submit()" in html
