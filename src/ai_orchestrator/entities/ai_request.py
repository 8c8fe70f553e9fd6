"""Request-side domain entities."""

from dataclasses import dataclass
from enum import Enum


class ProviderName(str, Enum):
    """Closed set of model providers this service knows how to call."""

    GEMINI = "gemini"
    OPENAI_COMPATIBLE = "openai_compatible"


class CacheStrategy(str, Enum):
    """How a request interacts with the response cache.

    PREFER reads the cache first and writes back on a clean miss.
    BYPASS skips the read but still writes a fresh clean response.
    """

    PREFER = "prefer"
    BYPASS = "bypass"


@dataclass(frozen=True)
class ImageData:
    """Base64-encoded image attached to a request."""

    base64: str
    mime_type: str


@dataclass(frozen=True)
class AIRequest:
    """A single analysis request as the orchestrator sees it.

    Attributes:
        prompt: Fully rendered prompt text (opaque to this layer)
        image: Optional image to send alongside the prompt
        language: Output language code (e.g. "en", "pt-BR")
        temperature: Sampling temperature override
        max_tokens: Output token cap override
        timeout_ms: Deadline for the provider call
        lens: Ethical lens id; when set, output is policy-validated
        additional_info: Free-text user correction, never part of the cache key
    """

    prompt: str
    image: ImageData | None = None
    language: str = "en"
    temperature: float | None = None
    max_tokens: int | None = None
    timeout_ms: int | None = None
    lens: int | None = None
    additional_info: str | None = None


@dataclass(frozen=True)
class CacheOptions:
    """Identity fields used to address the response cache."""

    prompt_template_id: str
    prompt_version: str
    mode: str
    focus_item: str | None = None
    strategy: CacheStrategy = CacheStrategy.PREFER


@dataclass(frozen=True)
class ClientIdentity:
    """Who is calling: an IP address and, when authenticated, a user id."""

    ip: str = "unknown"
    user_id: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None
