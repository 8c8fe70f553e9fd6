"""Input validation for analysis requests.

Validation failures are answered before any rate-limit, cache or provider
work happens.
"""

from collections.abc import Collection
from dataclasses import dataclass

from ai_orchestrator.config import settings
from ai_orchestrator.entities import AIRequest, CacheOptions
from ai_orchestrator.fingerprint import estimate_decoded_size

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


@dataclass(frozen=True)
class RequestLimits:
    """Size limits applied to incoming requests."""

    max_image_bytes: int = settings.max_image_bytes
    max_text_length: int = settings.max_text_length
    max_prompt_length: int = settings.max_prompt_length


def validate_request(
    request: AIRequest,
    options: CacheOptions,
    limits: RequestLimits | None = None,
    known_lenses: Collection[int] | None = None,
) -> str | None:
    """Check a request against the input rules.

    Returns:
        A caller-safe description of the first problem, or None if valid
    """
    limits = limits or RequestLimits()

    if not request.prompt or not request.prompt.strip():
        return "Prompt is required"
    if len(request.prompt) > limits.max_prompt_length:
        return f"Prompt exceeds {limits.max_prompt_length} characters"

    if not options.prompt_template_id or not options.prompt_version or not options.mode:
        return "promptTemplateId, promptVersion and mode are required"

    if request.image is not None:
        if not request.image.base64 or not request.image.mime_type:
            return "Image requires both base64 and mimeType"
        if not request.image.mime_type.startswith("image/"):
            return "Image mimeType must be an image/* type"
        if estimate_decoded_size(request.image.base64) > limits.max_image_bytes:
            return f"Image exceeds {limits.max_image_bytes // (1024 * 1024)}MB"

    if options.focus_item and len(options.focus_item) > limits.max_text_length:
        return f"focusItem exceeds {limits.max_text_length} characters"
    if request.additional_info and len(request.additional_info) > limits.max_text_length:
        return f"additionalInfo exceeds {limits.max_text_length} characters"

    if request.temperature is not None and not MIN_TEMPERATURE <= request.temperature <= MAX_TEMPERATURE:
        return f"temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}"
    if request.max_tokens is not None and request.max_tokens <= 0:
        return "maxTokens must be positive"
    if request.timeout_ms is not None and request.timeout_ms <= 0:
        return "timeoutMs must be positive"

    if request.lens is not None and known_lenses is not None and request.lens not in known_lenses:
        return f"Unknown lens {request.lens}"

    return None
