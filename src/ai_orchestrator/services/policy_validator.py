"""Lens policy validation.

Rules live in a versioned JSON table (lens -> forbidden, allowed and
required-cue patterns plus a hand-written fallback payload), so adding a
lens is a data change. The matching engine below is generic.

Matching, per lens:
- each suggestion's text fields are joined and scanned; a forbidden match
  counts only when the same text matches none of the lens's allow patterns
- ``generalNote`` is scanned the same way
- if the lens has required cues, at least one must appear somewhere in the
  combined output
"""

import copy
import json
import re
from importlib import resources
from pathlib import Path
from typing import Any

from ai_orchestrator.config import settings
from ai_orchestrator.entities import PolicyResult, PolicyRule
from ai_orchestrator.exceptions import PolicyTableError
from ai_orchestrator.logger import get_logger

logger = get_logger(__name__)

SUGGESTION_TEXT_FIELDS = ("name", "description", "reasoning", "availability")


def _compile(patterns: Any, lens_id: int, field_name: str) -> tuple[re.Pattern[str], ...]:
    if not isinstance(patterns, list):
        raise PolicyTableError(f"Lens {lens_id}: {field_name} must be a list")
    try:
        return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)
    except (re.error, TypeError) as e:
        raise PolicyTableError(f"Lens {lens_id}: invalid pattern in {field_name}: {e}") from e


def parse_policy_table(raw: dict[str, Any]) -> tuple[str, dict[int, PolicyRule]]:
    """Compile a decoded policy table.

    Returns:
        (table version, rules keyed by lens id)

    Raises:
        PolicyTableError: If the table is malformed
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("lenses"), dict):
        raise PolicyTableError("Policy table must be an object with a 'lenses' object")

    rules: dict[int, PolicyRule] = {}
    for lens_key, body in raw["lenses"].items():
        try:
            lens_id = int(lens_key)
        except ValueError as e:
            raise PolicyTableError(f"Lens id must be an integer, got {lens_key!r}") from e
        if not isinstance(body, dict) or not body.get("title"):
            raise PolicyTableError(f"Lens {lens_id}: missing title")
        fallback = body.get("fallback")
        if not isinstance(fallback, dict):
            raise PolicyTableError(f"Lens {lens_id}: missing fallback payload")

        rules[lens_id] = PolicyRule(
            lens_id=lens_id,
            title=body["title"],
            forbidden_patterns=_compile(body.get("forbidden", []), lens_id, "forbidden"),
            allowed_patterns=_compile(body.get("allowed", []), lens_id, "allowed"),
            required_cue_patterns=_compile(body.get("requiredCues", []), lens_id, "requiredCues"),
            fallback={**fallback, "ethicalLensPosition": body["title"]},
        )

    if not rules:
        raise PolicyTableError("Policy table defines no lenses")
    return str(raw.get("version", "unversioned")), rules


def load_policy_table(path: str | Path | None = None) -> tuple[str, dict[int, PolicyRule]]:
    """Load the policy table from ``path`` or from the bundled default."""
    try:
        if path is not None:
            text = Path(path).read_text(encoding="utf-8")
        else:
            bundled = resources.files("ai_orchestrator") / "data" / "lens_policies.json"
            text = bundled.read_text(encoding="utf-8")
        raw = json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        raise PolicyTableError(f"Could not load policy table: {e}") from e
    return parse_policy_table(raw)


def suggestion_text(suggestion: Any) -> str:
    if not isinstance(suggestion, dict):
        return str(suggestion)
    return " ".join(str(suggestion[name]) for name in SUGGESTION_TEXT_FIELDS if suggestion.get(name))


class PolicyValidator:
    """Checks parsed model output against a lens's rules.

    Example:
        ```python
        validator = PolicyValidator.create()
        result = validator.validate(payload, lens=1)
        if not result.passed:
            payload = validator.fallback_for(1)
        ```
    """

    def __init__(self, rules: dict[int, PolicyRule], version: str = "unversioned") -> None:
        self._rules = rules
        self._version = version

    @classmethod
    def create(cls, path: str | Path | None = None) -> "PolicyValidator":
        """Factory method loading the table from ``path``, settings, or the bundled file."""
        version, rules = load_policy_table(path or settings.policy_table_path)
        logger.info("Loaded lens policies", extra={"version": version, "lenses": sorted(rules)})
        return cls(rules, version)

    @property
    def version(self) -> str:
        return self._version

    @property
    def lens_ids(self) -> frozenset[int]:
        return frozenset(self._rules)

    def rule_for(self, lens: int) -> PolicyRule:
        try:
            return self._rules[lens]
        except KeyError:
            raise PolicyTableError(f"Unknown lens {lens}") from None

    def _scan(self, rule: PolicyRule, text: str, location: str) -> list[str]:
        if rule.is_allowed(text):
            return []
        violations = []
        for pattern in rule.forbidden_patterns:
            match = pattern.search(text)
            if match:
                violations.append(
                    f'{location} contains forbidden phrase "{match.group(0)}" '
                    f"for lens {rule.lens_id} (pattern {pattern.pattern})"
                )
        return violations

    def validate(self, payload: Any, lens: int) -> PolicyResult:
        """Validate a parsed response payload for ``lens``.

        Raises:
            PolicyTableError: If ``lens`` is not in the table
        """
        rule = self.rule_for(lens)
        violations: list[str] = []
        warnings: list[str] = []

        if not isinstance(payload, dict):
            return PolicyResult(lens_id=lens, violations=("response is not a JSON object",))

        suggestions = payload.get("suggestions") or []
        if not isinstance(suggestions, list):
            suggestions = [suggestions]

        texts = []
        for index, suggestion in enumerate(suggestions, start=1):
            text = suggestion_text(suggestion)
            texts.append(text)
            name = suggestion.get("name") if isinstance(suggestion, dict) else None
            violations.extend(self._scan(rule, text, f'Suggestion {index} ("{name}")'))

        general_note = payload.get("generalNote") or ""
        if not isinstance(general_note, str):
            general_note = str(general_note)
        texts.append(general_note)
        violations.extend(self._scan(rule, general_note, "generalNote"))

        if rule.required_cue_patterns:
            combined = " ".join(texts)
            if not any(pattern.search(combined) for pattern in rule.required_cue_patterns):
                violations.append(f"Missing required cue for lens {rule.lens_id}")

        position = payload.get("ethicalLensPosition")
        if position != rule.title:
            warnings.append(f'Expected ethicalLensPosition "{rule.title}", got "{position}"')

        result = PolicyResult(lens_id=lens, violations=tuple(violations), warnings=tuple(warnings))
        for warning in result.warnings:
            logger.warning("Lens position mismatch", extra={"lens": lens, "detail": warning})
        if not result.passed:
            logger.error(
                "Lens boundary violations",
                extra={"lens": lens, "violation_count": len(result.violations), "violations": list(result.violations)},
            )
        return result

    def fallback_for(self, lens: int) -> dict[str, Any]:
        """Return a fresh copy of the lens's fixed fallback payload."""
        return copy.deepcopy(self.rule_for(lens).fallback)
