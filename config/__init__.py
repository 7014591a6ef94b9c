"""Configuration module for the Gemini REST client."""

from .settings import (
    GeminiConfig,
    LoggingConfig,
    ClientConfig,
)

__all__ = [
    "GeminiConfig",
    "LoggingConfig",
    "ClientConfig",
]
