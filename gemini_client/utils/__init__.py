"""Utility helpers for the Gemini REST client."""

from .config_loader import ConfigLoader

__all__ = ["ConfigLoader"]
