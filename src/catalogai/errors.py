"""
Error types raised inside the analysis engine.

Provider errors never escape the orchestrator's public operations; they are
converted into degraded or fallback results.

catalogai/src/catalogai/errors.py
"""

from typing import Optional

__all__ = [
    "CatalogAIError",
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderTimeoutError",
    "ProviderExecutionError",
    "ResponseParseError",
]


class CatalogAIError(Exception):
    """Base class for catalogai errors."""


class ProviderError(CatalogAIError):
    """An analysis provider failed."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class ProviderUnavailableError(ProviderError):
    """The provider's CLI could not be found on this host."""


class ProviderTimeoutError(ProviderError):
    """The provider's CLI exceeded its wall-clock timeout. Never retried."""

    def __init__(self, provider: str, timeout: float):
        super().__init__(provider, f"timed out after {timeout:g}s")
        self.timeout = timeout


class ProviderExecutionError(ProviderError):
    """The provider's CLI exited non-zero or could not be spawned."""

    def __init__(self, provider: str, message: str, exit_code: Optional[int] = None, stderr: str = ""):
        super().__init__(provider, message)
        self.exit_code = exit_code
        self.stderr = stderr


class ResponseParseError(CatalogAIError):
    """No parsing strategy produced a structurally valid response."""
