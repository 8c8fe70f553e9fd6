"""Helpers shared by the concrete provider adapters."""

import time

from ai_orchestrator.entities import AIResponse, ErrorCode, ResponseMetadata

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096


def elapsed_ms(started: float) -> int:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return int((time.perf_counter() - started) * 1000)


def classify_status(status: int) -> ErrorCode:
    """Map an upstream HTTP status onto the error taxonomy."""
    if status in (401, 403):
        return ErrorCode.AUTHENTICATION
    if status == 429:
        return ErrorCode.RATE_LIMIT
    if status == 408:
        return ErrorCode.TIMEOUT
    return ErrorCode.PROVIDER_ERROR


def status_message(provider_label: str, status: int) -> str:
    """Caller-safe message for an upstream HTTP failure."""
    code = classify_status(status)
    if code is ErrorCode.AUTHENTICATION:
        return "Authentication failed. Check your API key."
    if code is ErrorCode.RATE_LIMIT:
        return "Rate limit exceeded. Please try again later."
    if code is ErrorCode.TIMEOUT:
        return f"{provider_label} timed out processing the request."
    if status >= 500:
        return f"{provider_label} service error. Please try again later."
    return f"{provider_label} rejected the request (HTTP {status})."


def failure(
    provider: str,
    model: str,
    started: float,
    code: ErrorCode,
    message: str,
    status: int | None = None,
) -> AIResponse:
    """Build a failure envelope. Only the HTTP status goes into details."""
    return AIResponse.failure(
        code=code,
        message=message,
        metadata=ResponseMetadata(provider=provider, model=model, latency_ms=elapsed_ms(started)),
        details={"status": status} if status is not None else None,
    )
