"""Errors raised by the provider client wrappers."""

from __future__ import annotations

from typing import Any, Optional


class ProviderError(Exception):
    """
    A provider answered with a non-success response.

    ``body`` keeps the raw response text and ``details`` the parsed JSON (when
    it parsed) so the failure can be logged in full server-side.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        is_multi_status: bool = False,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.body = body
        self.details = details or {}
        self.is_multi_status = is_multi_status

    @property
    def item_errors(self) -> list[Any]:
        """Per-item failures reported by a batch (multi-status) response."""
        errors = self.details.get("errors")
        return list(errors) if isinstance(errors, list) else []


class ProviderExchangeError(ProviderError):
    """Raised when a provider token endpoint rejects a code or refresh exchange."""


__all__ = ["ProviderError", "ProviderExchangeError"]
