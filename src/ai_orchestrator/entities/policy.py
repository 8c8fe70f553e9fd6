"""Lens policy entities."""

import re
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PolicyRule:
    """Compiled rule set for a single ethical lens."""

    lens_id: int
    title: str
    forbidden_patterns: tuple[re.Pattern[str], ...] = ()
    allowed_patterns: tuple[re.Pattern[str], ...] = ()
    required_cue_patterns: tuple[re.Pattern[str], ...] = ()
    fallback: dict[str, Any] = field(default_factory=dict)

    def is_allowed(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.allowed_patterns)


@dataclass(frozen=True)
class PolicyResult:
    """Violations block a response; warnings are only logged."""

    lens_id: int
    violations: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return not self.violations
