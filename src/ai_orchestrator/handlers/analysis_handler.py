"""HTTP handler for analysis requests.

Converts the camelCase DTO into domain entities, runs the orchestrator and
maps the envelope's error code onto an HTTP status.
"""

from collections.abc import Mapping

from fastapi import status
from fastapi.responses import JSONResponse

from ai_orchestrator.dto import AnalyzeRequest
from ai_orchestrator.entities import (
    AIRequest,
    AIResponse,
    CacheOptions,
    ClientIdentity,
    ErrorCode,
    ImageData,
)
from ai_orchestrator.services import Orchestrator

STATUS_BY_ERROR_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.RATE_LIMIT: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.NETWORK: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.AUTHENTICATION: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def client_identity(headers: Mapping[str, str], fallback_ip: str | None = None) -> ClientIdentity:
    """Identify the caller from proxy headers.

    The IP is the first ``X-Forwarded-For`` entry, else ``X-Real-IP``,
    else ``CF-Connecting-IP``, else the socket peer, else "unknown". The
    authenticating gateway forwards the user id in ``X-User-Id``.
    """
    ip = None
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    ip = ip or headers.get("x-real-ip") or headers.get("cf-connecting-ip") or fallback_ip or "unknown"
    user_id = (headers.get("x-user-id") or "").strip() or None
    return ClientIdentity(ip=ip, user_id=user_id)


def to_domain(body: AnalyzeRequest) -> tuple[AIRequest, CacheOptions]:
    """Split the DTO into the provider request and the cache identity."""
    image = None
    if body.image is not None:
        image = ImageData(base64=body.image.base64, mime_type=body.image.mime_type)
    request = AIRequest(
        prompt=body.prompt,
        image=image,
        language=body.language,
        temperature=body.temperature,
        max_tokens=body.max_tokens,
        timeout_ms=body.timeout_ms,
        lens=body.lens,
        additional_info=body.additional_info,
    )
    options = CacheOptions(
        prompt_template_id=body.prompt_template_id,
        prompt_version=body.prompt_version,
        mode=body.mode,
        focus_item=body.focus_item,
        strategy=body.cache_strategy,
    )
    return request, options


def envelope_response(response: AIResponse) -> JSONResponse:
    """Render an envelope with the status code matching its error."""
    if response.success or response.error is None:
        return JSONResponse(content=response.to_dict(), status_code=status.HTTP_200_OK)

    headers = {}
    retry_after = (response.error.details or {}).get("retryAfter")
    if response.error.code is ErrorCode.RATE_LIMIT and retry_after:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        content=response.to_dict(),
        status_code=STATUS_BY_ERROR_CODE[response.error.code],
        headers=headers,
    )


class AnalysisHandler:
    """HTTP handler for POST /analyze.

    Example:
        ```python
        handler = AnalysisHandler(orchestrator=orchestrator)

        @app.post("/analyze")
        async def analyze(body: AnalyzeRequest, request: Request):
            return await handler.analyze(body, client_identity(request.headers))
        ```
    """

    def __init__(self, orchestrator: Orchestrator) -> None:
        self._orchestrator = orchestrator

    async def analyze(self, body: AnalyzeRequest, client: ClientIdentity) -> JSONResponse:
        request, options = to_domain(body)
        response = await self._orchestrator.analyze(
            request,
            options,
            client=client,
            provider_name=body.provider,
        )
        return envelope_response(response)
