"""Data Transfer Objects for API contracts.

These Pydantic models define the external (camelCase) API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import ADMIN_ACTIONS, AdminCacheRequest, AnalyzeRequest, CamelModel, ImagePayload
from .responses import (
    AdminCacheResponse,
    AnalyzeEnvelope,
    ErrorItem,
    HealthCheckResponse,
    ResponseMetadataItem,
    StatsResponse,
)

__all__ = [
    "ADMIN_ACTIONS",
    "AdminCacheRequest",
    "AdminCacheResponse",
    "AnalyzeEnvelope",
    "AnalyzeRequest",
    "CamelModel",
    "ErrorItem",
    "HealthCheckResponse",
    "ImagePayload",
    "ResponseMetadataItem",
    "StatsResponse",
]
