"""Custom exception types for StockWatch."""

from __future__ import annotations

from typing import Optional


class PageLoadError(Exception):
    """Raised when a product page fails to load or render correctly."""

    def __init__(
        self,
        message: str = "Failed to load page.",
        *,
        url: Optional[str] = None,
        location_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.url = url
        self.location_code = location_code
        super().__init__(message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.url:
            context_parts.append(f"url={self.url}")
        if self.location_code:
            context_parts.append(f"location={self.location_code}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid at startup."""


class LocationValidationError(ValueError):
    """Raised when a subscriber-entered location code is rejected."""

    def __init__(self, code: str, reason: str | None = None) -> None:
        self.code = code
        self.reason = reason or "Invalid location code"
        super().__init__(f"{self.reason} (code={code})")
