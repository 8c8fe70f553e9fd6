"""Request DTOs for API endpoints."""

from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ai_orchestrator.entities import CacheStrategy

AdminAction = Literal["flush_all", "invalidate_by_prompt", "invalidate_by_model", "invalidate_by_key", "purge_expired"]
ADMIN_ACTIONS: tuple[str, ...] = get_args(AdminAction)


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImagePayload(CamelModel):
    """Base64 image attached to an analysis request."""

    base64: str = Field("", description="Base64 data, optionally as a data: URI")
    mime_type: str = Field("", description="MIME type, e.g. image/jpeg")


class AnalyzeRequest(CamelModel):
    """Request DTO for POST /analyze.

    Field-level rules (lengths, image size, lens ids) are enforced by the
    orchestrator so that failures come back as INVALID_REQUEST envelopes.
    The handler converts this into an AIRequest and CacheOptions.
    """

    prompt: str = Field("", description="Fully rendered prompt text")
    prompt_template_id: str = Field("", description="Identifier of the prompt template")
    prompt_version: str = Field("", description="Template version; changing it invalidates cached answers")
    mode: str = Field("", description="Analysis mode, e.g. analyze, suggest, describe")
    language: str = Field("en", description="Output language code")
    focus_item: str | None = Field(None, description="Item the user asked about")
    image: ImagePayload | None = None
    additional_info: str | None = Field(
        None,
        description="Free-text user correction. Never part of the cache key.",
    )
    lens: int | None = Field(None, description="Ethical lens id; enables policy validation")
    temperature: float | None = None
    max_tokens: int | None = None
    timeout_ms: int | None = None
    provider: str | None = Field(None, description="Registered provider name; the default if omitted")
    cache_strategy: CacheStrategy = CacheStrategy.PREFER


class AdminCacheRequest(CamelModel):
    """Request DTO for POST /admin/cache."""

    action: AdminAction
    prompt_template_id: str | None = None
    prompt_version: str | None = None
    model: str | None = None
    cache_key: str | None = None
