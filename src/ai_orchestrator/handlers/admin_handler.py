"""HTTP handlers for cache administration, stats and health.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, authorization and errors.
"""

import hmac

from fastapi import HTTPException, status

from ai_orchestrator.dto import AdminCacheRequest, AdminCacheResponse, HealthCheckResponse, StatsResponse
from ai_orchestrator.exceptions import StoreUnavailableError
from ai_orchestrator.logger import get_logger
from ai_orchestrator.protocols import RateLimitStore
from ai_orchestrator.services import CacheService, PolicyValidator, ProviderRegistry

logger = get_logger(__name__)


class AdminHandler:
    """HTTP handlers for operational endpoints.

    This handler delegates business logic to CacheService and handles
    HTTP-specific concerns like:
    - Bearer token checks for administrative actions
    - Converting service results to DTOs
    - Setting appropriate status codes
    """

    def __init__(
        self,
        cache_service: CacheService,
        rate_limit_store: RateLimitStore,
        providers: ProviderRegistry,
        policy: PolicyValidator,
        admin_token: str | None = None,
    ) -> None:
        """Initialize the admin handler.

        Args:
            cache_service: The cache service (required).
            rate_limit_store: Counter store, probed by the health check.
            providers: Registered providers, listed by the health check.
            policy: Policy validator, for the table version in stats.
            admin_token: Bearer token for /admin/cache. None disables the endpoint.
        """
        self._cache = cache_service
        self._rate_limit_store = rate_limit_store
        self._providers = providers
        self._policy = policy
        self._admin_token = admin_token

    def authorize(self, authorization: str | None) -> None:
        """Check the ``Authorization: Bearer <token>`` header.

        Raises:
            HTTPException: 403 when no admin token is configured, 401 when
                the header is missing or wrong
        """
        if not self._admin_token:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cache administration is disabled",
            )
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not hmac.compare_digest(
            token.strip().encode("utf-8"), self._admin_token.encode("utf-8")
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or missing admin token",
                headers={"WWW-Authenticate": "Bearer"},
            )

    def _run(self, request: AdminCacheRequest) -> int:
        if request.action == "flush_all":
            return self._cache.clear()
        if request.action == "purge_expired":
            return self._cache.purge_expired()
        if request.action == "invalidate_by_prompt":
            if not request.prompt_template_id:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "promptTemplateId is required")
            return self._cache.invalidate_by_prompt(request.prompt_template_id, request.prompt_version)
        if request.action == "invalidate_by_model":
            if not request.model:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "model is required")
            return self._cache.invalidate_by_model(request.model)
        if not request.cache_key:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "cacheKey is required")
        return self._cache.invalidate_key(request.cache_key)

    async def manage_cache(self, request: AdminCacheRequest, authorization: str | None) -> AdminCacheResponse:
        """Handle POST /admin/cache requests.

        Raises:
            HTTPException: 401/403 on auth failure, 400 on missing fields,
                503 if the cache store is unreachable
        """
        self.authorize(authorization)
        try:
            removed = self._run(request)
        except StoreUnavailableError as e:
            logger.error("Cache administration failed", extra={"action": request.action, "error": str(e)})
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Cache store unavailable",
            ) from e

        logger.info("Cache control action completed", extra={"action": request.action, "removed": removed})
        return AdminCacheResponse(success=True, action=request.action, removed=removed)

    async def get_stats(self) -> StatsResponse:
        """Handle GET /stats requests.

        Raises:
            HTTPException: 503 if the cache store is unreachable
        """
        try:
            cache_stats = self._cache.get_stats()
        except StoreUnavailableError as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Cache store unavailable",
            ) from e

        return StatsResponse(
            cache=cache_stats,
            usage=self._cache.usage_summary(),
            policy_version=self._policy.version,
        )

    async def health_check(self) -> tuple[HealthCheckResponse, bool]:
        """Handle GET /health requests.

        Returns:
            (health DTO, whether every store is reachable)
        """
        cache_ok = self._cache.health_check()
        rate_limit_ok = self._rate_limit_store.health_check()
        healthy = cache_ok and rate_limit_ok
        return (
            HealthCheckResponse(
                status="healthy" if healthy else "unhealthy",
                cache_healthy=cache_ok,
                rate_limit_healthy=rate_limit_ok,
                providers=self._providers.names(),
            ),
            healthy,
        )
