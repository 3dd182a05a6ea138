"""Error types shared by the services and rendered by the API error handlers."""

from typing import Any


class ValidationError(ValueError):
    """Caller input is missing or malformed (HTTP 400).

    Raised before any remote call is made.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(RuntimeError):
    """Required Shopify configuration is missing (HTTP 500)."""

    def __init__(self, missing: list[str]):
        super().__init__(f"Server misconfigured: missing {', '.join(missing)}")
        self.missing = missing
