"""
Tests for the signed request dispatcher.

Tests cover:
- Header construction for signed POSTs
- Nonce consumption (including on failure)
- Concurrent dispatch nonce uniqueness
- Transport and HTTP error mapping
- Field validation before a nonce is consumed
- Unauthenticated GETs
"""

import base64
import hashlib
import hmac
import json
import threading
from decimal import Decimal
import pytest
from unittest.mock import Mock

import requests

from config.settings import GeminiConfig
from gemini_client.api.auth import GeminiCredentials, NonceManager
from gemini_client.api.dispatcher import SignedRequestDispatcher
from gemini_client.api.errors import (
    AuthenticationError,
    ConfigurationError,
    ExchangeError,
    TransportError,
)

TEST_API_KEY = "account-test-key"
TEST_API_SECRET = "test_secret"
BASE_URL = "https://api.sandbox.gemini.com"


def _response(status_code: int = 200, content: bytes = b"[]") -> Mock:
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = content
    return response


def _payload(call) -> dict:
    return json.loads(base64.b64decode(call.kwargs["headers"]["X-API-PAYLOAD"]))


@pytest.fixture
def session():
    session = Mock(spec=requests.Session)
    session.request.return_value = _response()
    return session


@pytest.fixture
def dispatcher(session):
    return SignedRequestDispatcher(
        credentials=GeminiCredentials(TEST_API_KEY, TEST_API_SECRET),
        base_url=BASE_URL,
        timeout=5,
        session=session,
        nonce_manager=NonceManager(start=1000),
    )


class TestDispatch:
    """Tests for signed POST dispatch."""

    def test_posts_to_route_with_empty_body(self, dispatcher, session):
        dispatcher.dispatch("/v1/balances")

        call = session.request.call_args
        assert call.args == ("POST", f"{BASE_URL}/v1/balances")
        assert "data" not in call.kwargs
        assert "json" not in call.kwargs
        assert call.kwargs["timeout"] == 5

    def test_headers(self, dispatcher, session):
        dispatcher.dispatch("/v1/balances")

        headers = session.request.call_args.kwargs["headers"]
        assert headers["X-API-KEY"] == TEST_API_KEY
        assert headers["Content-Length"] == "0"

        expected = hmac.new(
            TEST_API_SECRET.encode(),
            headers["X-API-PAYLOAD"].encode(),
            hashlib.sha384,
        ).hexdigest()
        assert headers["X-API-SIGNATURE"] == expected

    def test_payload_contains_route_nonce_and_fields(self, dispatcher, session):
        dispatcher.dispatch("/v1/order/new", {"symbol": "btcusd", "amount": "0.100000"})

        assert _payload(session.request.call_args) == {
            "request": "/v1/order/new",
            "nonce": 1000,
            "symbol": "btcusd",
            "amount": "0.100000",
        }

    def test_secret_not_sent(self, dispatcher, session):
        dispatcher.dispatch("/v1/balances", {"note": "x"})

        call = session.request.call_args
        assert TEST_API_SECRET not in json.dumps(_payload(call))
        assert TEST_API_SECRET not in json.dumps(call.kwargs["headers"])

    def test_returns_raw_body(self, dispatcher, session):
        session.request.return_value = _response(content=b'[{"currency": "BTC"}]')
        assert dispatcher.dispatch("/v1/balances") == b'[{"currency": "BTC"}]'

    def test_nonces_strictly_increasing(self, dispatcher, session):
        for _ in range(5):
            dispatcher.dispatch("/v1/orders")

        nonces = [_payload(call)["nonce"] for call in session.request.call_args_list]
        assert nonces == [1000, 1001, 1002, 1003, 1004]

    def test_concurrent_dispatch_unique_nonces(self, dispatcher, session):
        """Test that concurrent callers never send the same nonce."""
        def worker():
            for _ in range(50):
                dispatcher.dispatch("/v1/orders")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        nonces = [_payload(call)["nonce"] for call in session.request.call_args_list]
        assert len(nonces) == 400
        assert sorted(nonces) == list(range(1000, 1400))


class TestDispatchFields:
    """Tests for caller field validation and encoding."""

    def test_decimal_field_sent_as_string(self, dispatcher, session):
        dispatcher.dispatch("/v1/order/new", {"amount": Decimal("1.5")})

        assert _payload(session.request.call_args)["amount"] == "1.5"

    def test_reserved_field_raises_configuration_error(self, dispatcher, session):
        with pytest.raises(ConfigurationError) as exc_info:
            dispatcher.dispatch("/v1/order/new", {"nonce": 1})

        assert exc_info.value.route == "/v1/order/new"
        session.request.assert_not_called()
        assert dispatcher.nonce_manager.peek() == 1000

    def test_unserializable_field_raises_configuration_error(self, dispatcher, session):
        with pytest.raises(ConfigurationError) as exc_info:
            dispatcher.dispatch("/v1/order/new", {"amount": object()})

        assert exc_info.value.route == "/v1/order/new"
        session.request.assert_not_called()
        assert dispatcher.nonce_manager.peek() == 1000

    def test_rejected_fields_do_not_skip_a_nonce(self, dispatcher, session):
        with pytest.raises(ConfigurationError):
            dispatcher.dispatch("/v1/order/new", {"request": "/v1/balances"})

        dispatcher.dispatch("/v1/orders")

        assert _payload(session.request.call_args)["nonce"] == 1000


class TestDispatchFailures:
    """Tests for transport and exchange failures."""

    def test_connection_error_raises_transport_error(self, dispatcher, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransportError) as exc_info:
            dispatcher.dispatch("/v1/order/new", {"symbol": "btcusd"})

        assert exc_info.value.route == "/v1/order/new"
        assert isinstance(exc_info.value.cause, requests.exceptions.ConnectionError)

    def test_timeout_raises_transport_error(self, dispatcher, session):
        session.request.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(TransportError):
            dispatcher.dispatch("/v1/balances")

    def test_failed_call_keeps_nonce_consumed(self, dispatcher, session):
        """Test that the nonce is not rolled back after a transport failure."""
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransportError):
            dispatcher.dispatch("/v1/order/new")

        assert dispatcher.nonce_manager.peek() == 1001

        session.request.side_effect = None
        session.request.return_value = _response()
        dispatcher.dispatch("/v1/orders")

        assert _payload(session.request.call_args)["nonce"] == 1001

    def test_no_retry_on_failure(self, dispatcher, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransportError):
            dispatcher.dispatch("/v1/balances")

        assert session.request.call_count == 1

    def test_http_error_is_classified(self, dispatcher, session):
        body = b'{"result": "error", "reason": "InvalidNonce", "message": "Nonce too low"}'
        session.request.return_value = _response(400, body)

        with pytest.raises(AuthenticationError) as exc_info:
            dispatcher.dispatch("/v1/balances")

        assert exc_info.value.status_code == 400
        assert exc_info.value.route == "/v1/balances"
        assert dispatcher.nonce_manager.peek() == 1001

    def test_server_error_keeps_body(self, dispatcher, session):
        session.request.return_value = _response(503, b"Service Unavailable")

        with pytest.raises(ExchangeError) as exc_info:
            dispatcher.dispatch("/v1/orders")

        assert exc_info.value.body == b"Service Unavailable"


class TestPublicGet:
    """Tests for unauthenticated GET requests."""

    def test_get_does_not_sign_or_consume_nonce(self, dispatcher, session):
        session.request.return_value = _response(content=b'{"bid": "1"}')

        body = dispatcher.get("/v1/pubticker/btcusd")

        call = session.request.call_args
        assert call.args == ("GET", f"{BASE_URL}/v1/pubticker/btcusd")
        assert "headers" not in call.kwargs
        assert body == b'{"bid": "1"}'
        assert dispatcher.nonce_manager.peek() == 1000

    def test_get_transport_error(self, dispatcher, session):
        session.request.side_effect = requests.exceptions.ConnectionError("dns")

        with pytest.raises(TransportError) as exc_info:
            dispatcher.get("/v1/pubticker/btcusd")

        assert exc_info.value.route == "/v1/pubticker/btcusd"


class TestDispatcherSetup:
    """Tests for construction helpers."""

    def test_from_config_uses_sandbox_url(self, session):
        dispatcher = SignedRequestDispatcher.from_config(
            GeminiConfig(sandbox=True, request_timeout=12),
            GeminiCredentials(TEST_API_KEY, TEST_API_SECRET),
            session=session,
        )
        dispatcher.dispatch("/v1/balances")

        call = session.request.call_args
        assert call.args[1] == "https://api.sandbox.gemini.com/v1/balances"
        assert call.kwargs["timeout"] == 12

    def test_trailing_slash_stripped(self, session):
        dispatcher = SignedRequestDispatcher(
            GeminiCredentials(TEST_API_KEY, TEST_API_SECRET),
            base_url=BASE_URL + "/",
            session=session,
        )
        assert dispatcher.base_url == BASE_URL

    def test_default_session_has_no_retries(self):
        dispatcher = SignedRequestDispatcher(
            GeminiCredentials(TEST_API_KEY, TEST_API_SECRET),
        )
        adapter = dispatcher._session.get_adapter("https://api.gemini.com")
        assert adapter.max_retries.total == 0
        dispatcher.close()

    def test_separate_dispatchers_have_separate_nonces(self, session):
        creds = GeminiCredentials(TEST_API_KEY, TEST_API_SECRET)
        first = SignedRequestDispatcher(creds, session=session)
        second = SignedRequestDispatcher(creds, session=session)

        assert first.nonce_manager is not second.nonce_manager

    def test_context_manager_closes_session(self, session):
        with SignedRequestDispatcher(
            GeminiCredentials(TEST_API_KEY, TEST_API_SECRET),
            session=session,
        ):
            pass
        session.close.assert_called_once()
