import os
from dataclasses import dataclass, field
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()

BACKENDS = ("memory", "redis")
PROVIDER_NAMES = ("gemini", "openai_compatible")


def _split_ids(value: str | None) -> tuple[str, ...]:
    """Parse a comma-separated list of ids from an environment variable."""
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Backends: "memory" (per-process) or "redis" (shared across instances)
    cache_backend: str = os.getenv("CACHE_BACKEND", "memory")
    rate_limit_backend: str = os.getenv("RATE_LIMIT_BACKEND", "memory")
    metrics_backend: str = os.getenv("METRICS_BACKEND", "memory")

    # Cache
    cache_ttl: int = int(os.getenv("CACHE_TTL", "604800"))  # 7 days default
    cache_key_prefix: str = os.getenv("CACHE_KEY_PREFIX", "ai_cache")
    cache_sweep_interval: int = int(os.getenv("CACHE_SWEEP_INTERVAL", "3600"))

    # Rate limiting
    ip_rate_limit_max: int = int(os.getenv("IP_RATE_LIMIT_MAX", "30"))
    ip_rate_limit_window_ms: int = int(os.getenv("IP_RATE_LIMIT_WINDOW_MS", "60000"))
    tier_limit_free: int = int(os.getenv("TIER_LIMIT_FREE", "10"))
    tier_limit_basic: int = int(os.getenv("TIER_LIMIT_BASIC", "50"))
    tier_limit_pro: int = int(os.getenv("TIER_LIMIT_PRO", "200"))
    anonymous_daily_limit: int = int(os.getenv("ANONYMOUS_DAILY_LIMIT", "10"))
    rate_limit_sweep_interval: int = int(os.getenv("RATE_LIMIT_SWEEP_INTERVAL", "60"))
    basic_product_ids: tuple[str, ...] = field(
        default_factory=lambda: _split_ids(os.getenv("BASIC_PRODUCT_IDS"))
    )
    pro_product_ids: tuple[str, ...] = field(
        default_factory=lambda: _split_ids(os.getenv("PRO_PRODUCT_IDS"))
    )

    # Request limits
    provider_timeout_ms: int = int(os.getenv("PROVIDER_TIMEOUT_MS", "30000"))
    max_image_bytes: int = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))
    max_text_length: int = int(os.getenv("MAX_TEXT_LENGTH", "5000"))
    max_prompt_length: int = int(os.getenv("MAX_PROMPT_LENGTH", "100000"))

    # Providers
    default_provider: str = os.getenv("DEFAULT_PROVIDER", "gemini")
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-exp")
    gemini_base_url: str = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/models"
    )
    openai_compat_api_key: str | None = os.getenv("OPENAI_COMPAT_API_KEY")
    openai_compat_model: str = os.getenv("OPENAI_COMPAT_MODEL", "google/gemini-2.5-flash")
    openai_compat_base_url: str = os.getenv(
        "OPENAI_COMPAT_BASE_URL", "https://ai.gateway.lovable.dev/v1"
    )

    # Policy
    policy_table_path: str | None = os.getenv("POLICY_TABLE_PATH")

    # API
    admin_api_token: str | None = os.getenv("ADMIN_API_TOKEN")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "false").lower() == "true"

    @property
    def tier_limits(self) -> dict[str, int]:
        """Hourly request quota per subscription tier."""
        return {
            "free": self.tier_limit_free,
            "basic": self.tier_limit_basic,
            "pro": self.tier_limit_pro,
        }

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        for name in ("cache_backend", "rate_limit_backend", "metrics_backend"):
            value = getattr(self, name)
            if value not in BACKENDS:
                raise ValueError(f"{name.upper()} must be one of {list(BACKENDS)}, got {value!r}")

        if self.default_provider not in PROVIDER_NAMES:
            raise ValueError(
                f"DEFAULT_PROVIDER must be one of {list(PROVIDER_NAMES)}, "
                f"got {self.default_provider!r}"
            )

        if self.cache_ttl <= 0:
            raise ValueError("CACHE_TTL must be positive")

        if self.provider_timeout_ms <= 0:
            raise ValueError("PROVIDER_TIMEOUT_MS must be positive")

        if self.ip_rate_limit_max <= 0 or self.ip_rate_limit_window_ms <= 0:
            raise ValueError("IP_RATE_LIMIT_MAX and IP_RATE_LIMIT_WINDOW_MS must be positive")

        if min(self.tier_limits.values()) <= 0:
            raise ValueError("TIER_LIMIT_* values must be positive")

        if self.anonymous_daily_limit < 0:
            raise ValueError("ANONYMOUS_DAILY_LIMIT must be >= 0 (0 disables it)")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client(config: Settings | None = None) -> redis.Redis:
    """Create a Redis client instance."""
    config = config or settings
    return redis.from_url(
        config.redis_url,
        password=config.redis_password,
        decode_responses=True,
    )
