"""
Signed request dispatcher.

Turns a logical request (route + body fields) into a signed HTTP call:
- Consumes a nonce for every authenticated call, even ones that fail
- Signs the base64 JSON payload with HMAC-SHA384
- POSTs with an empty body and the auth headers
- Maps network failures to TransportError and exchange errors to ExchangeError

Returns raw response bytes; typed decoding lives in rest_client.
"""

import logging
from typing import Dict, Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config.settings import GeminiConfig
from .auth import GeminiAuth, GeminiCredentials, NonceManager
from .errors import TransportError, classify_and_raise

logger = logging.getLogger(__name__)


class SignedRequestDispatcher:
    """
    Dispatches authenticated and public requests to the exchange.

    Usage:
        dispatcher = SignedRequestDispatcher(
            credentials=GeminiCredentials("key", "secret"),
            base_url="https://api.sandbox.gemini.com",
        )
        body = dispatcher.dispatch("/v1/balances")
        ticker = dispatcher.get("/v1/pubticker/btcusd")
    """

    def __init__(
        self,
        credentials: GeminiCredentials,
        base_url: str = GeminiConfig.rest_base_url,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        nonce_manager: Optional[NonceManager] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            credentials: API key and secret
            base_url: Exchange REST base URL
            timeout: Request timeout in seconds
            session: Optional preconfigured requests session
            nonce_manager: Optional nonce counter (one per dispatcher by default)
        """
        self._auth = GeminiAuth(credentials)
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._nonces = nonce_manager or NonceManager()

        if session is None:
            session = requests.Session()
            # A failed call is final; no transport level retries
            adapter = HTTPAdapter(max_retries=Retry(total=0))
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self._session = session

        logger.info(f"Initialized Gemini dispatcher for {self._base_url}")

    @classmethod
    def from_config(
        cls,
        config: GeminiConfig,
        credentials: GeminiCredentials,
        **kwargs,
    ) -> "SignedRequestDispatcher":
        """Create dispatcher from a GeminiConfig."""
        return cls(
            credentials=credentials,
            base_url=config.base_url,
            timeout=config.request_timeout,
            **kwargs,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def nonce_manager(self) -> NonceManager:
        return self._nonces

    def dispatch(
        self,
        route: str,
        fields: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        """
        Send a signed POST request.

        Args:
            route: API route, also embedded in the payload as ``request``
            fields: Extra body fields

        Returns:
            Raw response body

        Raises:
            ConfigurationError: If the fields are reserved or unserializable
            TransportError: On connection failure or timeout
            ExchangeError: If the exchange returns an error status
        """
        # Bad fields must not burn a nonce
        self._auth.check_fields(route, fields)

        # Lock is released before the round trip
        nonce = self._nonces.next_nonce()
        headers, _ = self._auth.get_signed_payload(route, nonce, fields)
        headers.update({
            "Content-Type": "text/plain",
            "Content-Length": "0",
            "Cache-Control": "no-cache",
        })

        logger.debug(f"POST {route} nonce={nonce}")
        return self._send("POST", route, headers=headers)

    def get(
        self,
        route: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        """
        Send an unauthenticated GET request. No nonce is consumed.

        Raises:
            TransportError: On connection failure or timeout
            ExchangeError: If the exchange returns an error status
        """
        logger.debug(f"GET {route} params={params}")
        return self._send("GET", route, params=params)

    def _send(self, method: str, route: str, **kwargs) -> bytes:
        url = f"{self._base_url}{route}"

        try:
            response = self._session.request(
                method,
                url,
                timeout=self._timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to {method} {route}: {e}")
            raise TransportError(route, e) from e

        logger.debug(
            f"{method} {route} -> {response.status_code} "
            f"({len(response.content)} bytes)"
        )

        if not response.ok:
            classify_and_raise(route, response.status_code, response.content)

        return response.content

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
