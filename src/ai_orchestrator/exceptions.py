"""Internal exception hierarchy.

None of these reach HTTP callers directly: services catch them at their
boundary and translate them into envelope errors, misses, or fail-open
decisions.
"""


class OrchestratorError(Exception):
    """Base class for errors raised inside the orchestration layer."""


class StoreUnavailableError(OrchestratorError):
    """A backing store (cache, rate-limit counters, metrics) could not be reached."""

    def __init__(self, store: str, operation: str, cause: Exception | None = None) -> None:
        self.store = store
        self.operation = operation
        message = f"{store} unavailable during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class CorruptEntryError(OrchestratorError):
    """A stored record could not be decoded."""

    def __init__(self, store: str, key: str, cause: Exception) -> None:
        self.store = store
        self.key = key
        super().__init__(f"{store} record {key!r} is corrupt: {cause}")


class ProviderNotRegisteredError(OrchestratorError):
    """The requested provider was never registered at startup."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Provider "{name}" not registered')


class PolicyTableError(OrchestratorError):
    """The lens policy table is missing or malformed."""
