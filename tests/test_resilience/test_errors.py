"""Tests for answer provider error classification."""

from __future__ import annotations

import pytest

from groundcheck.resilience.errors import (
    ErrorClass,
    ProviderError,
    classify_error,
    is_retryable,
)

# ── classify_error ───────────────────────────────────────────


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (429, ErrorClass.TRANSIENT),
        (408, ErrorClass.TIMEOUT),
        (401, ErrorClass.CLIENT),
        (404, ErrorClass.CLIENT),
        (500, ErrorClass.SERVER),
        (503, ErrorClass.SERVER),
    ],
)
def test_classify_status_code(status_code: int, expected: ErrorClass) -> None:
    """ProviderError status_code decides the class before anything else."""
    assert classify_error(ProviderError("failed", status_code)) == expected


def test_classify_timeout_error_type() -> None:
    """TimeoutError instance → TIMEOUT (no string matching)."""
    assert classify_error(TimeoutError()) == ErrorClass.TIMEOUT


def test_classify_connection_error_type() -> None:
    """ConnectionError and subclasses → TRANSIENT."""
    assert classify_error(ConnectionResetError()) == ErrorClass.TRANSIENT


@pytest.mark.parametrize("error", [ValueError("x"), TypeError("x"), KeyError("x")])
def test_classify_bad_input_as_client(error: Exception) -> None:
    """Programming and input errors are never retried."""
    assert classify_error(error) == ErrorClass.CLIENT


def test_classify_string_fallback_rate_limit() -> None:
    """'rate limit' in message → TRANSIENT (string fallback)."""
    err = Exception("rate limit exceeded for model xyz")
    assert classify_error(err) == ErrorClass.TRANSIENT


def test_classify_string_fallback_server() -> None:
    """'503' in message → SERVER."""
    assert classify_error(Exception("upstream returned 503")) == ErrorClass.SERVER


def test_classify_string_fallback_connection() -> None:
    """'connection' in message → TRANSIENT."""
    err = Exception("connection refused to host")
    assert classify_error(err) == ErrorClass.TRANSIENT


def test_classify_string_fallback_timeout() -> None:
    """'timed out' in message → TIMEOUT."""
    err = Exception("request timed out after 30s")
    assert classify_error(err) == ErrorClass.TIMEOUT


def test_classify_unknown() -> None:
    """Unrecognized exception → UNKNOWN."""
    err = Exception("something completely unexpected")
    assert classify_error(err) == ErrorClass.UNKNOWN


# ── is_retryable ─────────────────────────────────────────────


def test_is_retryable_true_for_transient() -> None:
    """TRANSIENT, SERVER, TIMEOUT are retryable."""
    assert is_retryable(ProviderError("", 429)) is True
    assert is_retryable(ProviderError("", 500)) is True
    assert is_retryable(TimeoutError()) is True


def test_is_retryable_false_for_client() -> None:
    """CLIENT and UNKNOWN are not retryable."""
    assert is_retryable(ProviderError("", 401)) is False
    assert is_retryable(Exception("mystery")) is False
