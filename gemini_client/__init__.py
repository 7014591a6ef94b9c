"""Gemini REST client: signed requests, nonce sequencing and typed responses."""

from .api import (
    GeminiClient,
    GeminiCredentials,
    SignedRequestDispatcher,
    GeminiError,
    ConfigurationError,
    TransportError,
    DecodeError,
    ExchangeError,
)

__version__ = "0.1.0"

__all__ = [
    "GeminiClient",
    "GeminiCredentials",
    "SignedRequestDispatcher",
    "GeminiError",
    "ConfigurationError",
    "TransportError",
    "DecodeError",
    "ExchangeError",
]
