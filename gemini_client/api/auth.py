"""
Gemini API Authentication.

Implements HMAC-SHA384 payload signing for Gemini private API endpoints.
All private endpoints require authentication with API key and secret.

Usage:
    auth = GeminiAuth(GeminiCredentials(api_key="...", api_secret="..."))
    headers = auth.sign_request("/v1/balances", nonce=nonce_manager.next_nonce())
"""

import base64
import hashlib
import hmac
import json
import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Any, Optional, Tuple, Union

from .errors import ConfigurationError

API_KEY_HEADER = "X-API-KEY"
PAYLOAD_HEADER = "X-API-PAYLOAD"
SIGNATURE_HEADER = "X-API-SIGNATURE"


def _json_default(value: Any) -> str:
    """Encode Decimal field values as their exact string form."""
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@dataclass(frozen=True)
class GeminiCredentials:
    """API credentials for Gemini authentication."""
    api_key: str
    api_secret: Union[bytes, str] = field(repr=False)

    def __post_init__(self):
        """Validate credentials and normalize the secret to bytes."""
        if not self.api_key:
            raise ValueError("API key is required")
        if not self.api_secret:
            raise ValueError("API secret is required")

        if isinstance(self.api_secret, str):
            object.__setattr__(self, "api_secret", self.api_secret.encode("utf-8"))


class NonceManager:
    """
    Thread-safe nonce counter for one dispatcher.

    Starts from a nanosecond timestamp so a new session never reuses a
    nonce from an earlier one, then increments by exactly 1 per call.
    """

    def __init__(self, start: Optional[int] = None):
        """
        Initialize nonce manager.

        Args:
            start: First nonce to hand out (defaults to time.time_ns())
        """
        self._next = time.time_ns() if start is None else int(start)
        self._lock = threading.Lock()

    def next_nonce(self) -> int:
        """
        Consume and return the next nonce (thread-safe).

        Returns:
            Strictly increasing nonce
        """
        with self._lock:
            nonce = self._next
            self._next += 1
            return nonce

    def peek(self) -> int:
        """Return the nonce the next call will receive, without consuming it."""
        with self._lock:
            return self._next


class GeminiAuth:
    """
    Authentication handler for Gemini private API.

    Gemini signs the request body rather than the URL:
    1. Build the JSON body {"request": route, "nonce": nonce, ...fields}
    2. Base64 encode the JSON (the payload)
    3. HMAC-SHA384 the ASCII payload with the raw API secret
    4. Hex encode the digest

    The payload and signature travel in headers; the HTTP body is empty.
    """

    def __init__(self, credentials: GeminiCredentials):
        """
        Initialize authentication handler.

        Args:
            credentials: API key and secret
        """
        self._api_key = credentials.api_key
        self._api_secret = credentials.api_secret

    @property
    def api_key(self) -> str:
        return self._api_key

    @staticmethod
    def check_fields(
        route: str,
        fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Validate caller fields before a nonce is spent on them.

        Raises:
            ConfigurationError: If a field overrides ``request``/``nonce``
                or cannot be serialized to JSON
        """
        fields = fields or {}
        reserved = {"request", "nonce"} & set(fields)
        if reserved:
            raise ConfigurationError(
                f"Fields may not override {sorted(reserved)}", route
            )

        try:
            json.dumps(fields, default=_json_default)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Unserializable request field: {e}", route) from e

    @staticmethod
    def build_body(
        route: str,
        nonce: int,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Build the request body for a signed call.

        ``request`` and ``nonce`` come first, caller fields follow in
        insertion order.
        """
        GeminiAuth.check_fields(route, fields)
        return {"request": route, "nonce": nonce, **(fields or {})}

    @staticmethod
    def encode_payload(body: Dict[str, Any]) -> str:
        """Serialize a body to compact JSON and base64 encode it."""
        raw = json.dumps(body, separators=(",", ":"), default=_json_default)
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def sign(self, payload: str) -> str:
        """Hex HMAC-SHA384 of the base64 payload string."""
        return hmac.new(
            self._api_secret,
            payload.encode("ascii"),
            hashlib.sha384,
        ).hexdigest()

    def sign_request(
        self,
        route: str,
        nonce: int,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, str]:
        """
        Sign a request for Gemini private API.

        Args:
            route: API endpoint path (e.g., "/v1/balances")
            nonce: Nonce for this request
            fields: Extra body fields

        Returns:
            Headers dict with API key, payload and signature
        """
        headers, _ = self.get_signed_payload(route, nonce, fields)
        return headers

    def get_signed_payload(
        self,
        route: str,
        nonce: int,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, str], str]:
        """
        Get both signed headers and the base64 payload.

        Returns:
            Tuple of (headers, payload)
        """
        payload = self.encode_payload(self.build_body(route, nonce, fields))
        headers = {
            API_KEY_HEADER: self._api_key,
            PAYLOAD_HEADER: payload,
            SIGNATURE_HEADER: self.sign(payload),
        }
        return headers, payload


def load_credentials_from_env(prefix: str = "GEMINI_") -> GeminiCredentials:
    """
    Load API credentials from environment variables.

    Expects:
        GEMINI_API_KEY: API key
        GEMINI_API_SECRET: API secret

    Returns:
        GeminiCredentials instance

    Raises:
        ValueError: If environment variables not set
    """
    import os

    api_key = os.environ.get(f"{prefix}API_KEY", "")
    api_secret = os.environ.get(f"{prefix}API_SECRET", "")

    if not api_key or not api_secret:
        raise ValueError(
            f"{prefix}API_KEY and {prefix}API_SECRET environment variables required"
        )

    return GeminiCredentials(api_key=api_key, api_secret=api_secret)


def load_credentials_from_file(path: str) -> GeminiCredentials:
    """
    Load API credentials from a file.

    File format (one per line):
        api_key=YOUR_KEY
        api_secret=YOUR_SECRET

    Or JSON format:
        {"api_key": "...", "api_secret": "..."}

    Args:
        path: Path to credentials file

    Returns:
        GeminiCredentials instance
    """
    from pathlib import Path

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Credentials file not found: {path}")

    content = file_path.read_text().strip()

    # Try JSON first
    if content.startswith("{"):
        data = json.loads(content)
        return GeminiCredentials(
            api_key=data["api_key"],
            api_secret=data["api_secret"],
        )

    # Parse key=value format
    api_key = ""
    api_secret = ""

    for line in content.split("\n"):
        line = line.strip()
        if line.startswith("api_key="):
            api_key = line.split("=", 1)[1]
        elif line.startswith("api_secret="):
            api_secret = line.split("=", 1)[1]

    return GeminiCredentials(api_key=api_key, api_secret=api_secret)
