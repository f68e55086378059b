"""Error classification for injected answer providers.

Providers are arbitrary callables (LLM clients, HTTP services, test
doubles), so failures arrive as untyped exceptions. Classification
decides which failures are retried and how they are reported in probe
results.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorClass(StrEnum):
    TRANSIENT = "transient"  # 429, dropped connections; retryable
    SERVER = "server"  # 5xx; retryable
    TIMEOUT = "timeout"  # deadline exceeded; retryable with backoff
    CLIENT = "client"  # 4xx, bad input; do NOT retry
    UNKNOWN = "unknown"  # unclassified; do NOT retry


class ProviderError(Exception):
    """Raised by answer providers that know their failure's status code."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an error to determine handling strategy.

    Checks structured attributes first (status_code), then exception
    types, and falls back to string matching for untyped exceptions.
    """
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        if status_code in (408, 429):
            return (
                ErrorClass.TIMEOUT if status_code == 408 else ErrorClass.TRANSIENT
            )
        if 400 <= status_code < 500:
            return ErrorClass.CLIENT
        if 500 <= status_code < 600:
            return ErrorClass.SERVER

    if isinstance(error, TimeoutError):
        return ErrorClass.TIMEOUT
    if isinstance(error, ConnectionError):
        return ErrorClass.TRANSIENT
    if isinstance(error, (ValueError, TypeError, KeyError)):
        return ErrorClass.CLIENT

    msg = str(error).lower()

    if "timeout" in msg or "timed out" in msg:
        return ErrorClass.TIMEOUT
    if "429" in msg or "rate limit" in msg or "rate_limit" in msg:
        return ErrorClass.TRANSIENT
    if any(code in msg for code in ("500", "502", "503", "504")):
        return ErrorClass.SERVER
    if "econnrefused" in msg or "connection" in msg:
        return ErrorClass.TRANSIENT

    return ErrorClass.UNKNOWN


_RETRYABLE = frozenset({
    ErrorClass.TRANSIENT,
    ErrorClass.SERVER,
    ErrorClass.TIMEOUT,
})


def is_retryable(error: BaseException) -> bool:
    """Return True if the error category supports retry."""
    return classify_error(error) in _RETRYABLE
