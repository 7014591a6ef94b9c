"""
Configuration dataclasses for the Gemini REST client.

All configuration parameters are defined here with sensible defaults.
Values can be overridden via config.yaml or environment variables.
API credentials are never part of these objects.
"""

from dataclasses import dataclass, field
from typing import List, Optional


# ===========================================
# GEMINI API CONFIGURATION
# ===========================================

@dataclass
class GeminiConfig:
    """Gemini API configuration."""

    # API endpoints
    rest_base_url: str = "https://api.gemini.com"
    sandbox_base_url: str = "https://api.sandbox.gemini.com"
    sandbox: bool = False

    request_timeout: float = 30  # seconds

    @property
    def base_url(self) -> str:
        """Get the REST base URL for the selected environment."""
        return self.sandbox_base_url if self.sandbox else self.rest_base_url


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file_path: Optional[str] = None


# ===========================================
# MAIN CLIENT CONFIGURATION
# ===========================================

@dataclass
class ClientConfig:
    """Complete client configuration."""

    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> List[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        for name, url in (
            ("rest_base_url", self.gemini.rest_base_url),
            ("sandbox_base_url", self.gemini.sandbox_base_url),
        ):
            if not url.startswith(("https://", "http://")):
                errors.append(f"{name} must be an http(s) URL, got {url!r}")

        if self.gemini.request_timeout <= 0:
            errors.append(
                f"request_timeout must be positive, got {self.gemini.request_timeout}"
            )

        if self.logging.level.upper() not in (
            "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
        ):
            errors.append(f"Unknown log level {self.logging.level!r}")

        return errors
