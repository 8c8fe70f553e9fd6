"""Explicit provider registry.

Providers are registered once at startup under a ``ProviderName``. There is
no discovery: asking for a name that was never registered is an error.
"""

from ai_orchestrator.entities import ProviderName
from ai_orchestrator.exceptions import ProviderNotRegisteredError
from ai_orchestrator.logger import get_logger
from ai_orchestrator.protocols import AIProvider

logger = get_logger(__name__)


class ProviderRegistry:
    """Maps provider names to configured AIProvider instances."""

    def __init__(self, default: ProviderName | str = ProviderName.GEMINI) -> None:
        self._providers: dict[ProviderName, AIProvider] = {}
        self._default = ProviderName(default)

    @property
    def default(self) -> ProviderName:
        return self._default

    def register(self, provider: AIProvider) -> None:
        self._providers[provider.name] = provider
        logger.info(
            "Registered provider",
            extra={"provider": provider.name.value, "model": provider.model},
        )

    def get(self, name: ProviderName | str | None = None) -> AIProvider:
        """Return the provider for ``name`` (or the default).

        Raises:
            ProviderNotRegisteredError: If the name is unknown or unregistered
        """
        requested = self._default if name is None else name
        try:
            key = ProviderName(requested)
        except ValueError:
            raise ProviderNotRegisteredError(str(requested)) from None
        provider = self._providers.get(key)
        if provider is None:
            raise ProviderNotRegisteredError(key.value)
        return provider

    def names(self) -> list[str]:
        return [name.value for name in self._providers]

    async def close_all(self) -> None:
        for provider in self._providers.values():
            await provider.close()

    def __contains__(self, name: object) -> bool:
        try:
            return ProviderName(name) in self._providers
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._providers)
