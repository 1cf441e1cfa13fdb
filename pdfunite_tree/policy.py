"""Configuration for validating and ordering the input tree."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
import re
from typing import Any, Iterable, Mapping


class FeatureAction(str, Enum):
    """Verdict for a catalog entry of an input document."""

    ACCEPT = "accept"
    WARN = "warn"
    REJECT = "reject"


# Catalog entries every merge input may carry; the merge rebuilds or drops them.
STRUCTURAL_CATALOG_KEYS = frozenset(
    {"/Type", "/Version", "/Pages", "/PageMode", "/PageLayout", "/Outlines"}
)

DEFAULT_RULES: Mapping[str, FeatureAction] = {
    "/Names": FeatureAction.ACCEPT,
    "/OpenAction": FeatureAction.WARN,
    "/Metadata": FeatureAction.WARN,
    "/PieceInfo": FeatureAction.WARN,
}


def normalize_key(key: str) -> str:
    """Return ``key`` as a PDF name with its leading slash (``Names`` -> ``/Names``)."""

    key = key.strip()
    return key if key.startswith("/") else f"/{key}"


@dataclass(frozen=True)
class FeaturePolicy:
    """Maps catalog keys to a :class:`FeatureAction`.

    Keys with no rule fall back to ``default``. Structural keys are always
    accepted. With ``strict`` set, accepted non-structural keys are
    reported as warnings.
    """

    rules: Mapping[str, FeatureAction] = field(default_factory=lambda: dict(DEFAULT_RULES))
    default: FeatureAction = FeatureAction.REJECT
    strict: bool = False

    def __post_init__(self) -> None:
        normalized = {normalize_key(key): FeatureAction(action) for key, action in self.rules.items()}
        object.__setattr__(self, "rules", normalized)
        object.__setattr__(self, "default", FeatureAction(self.default))

    def action_for(self, key: str) -> FeatureAction:
        key = normalize_key(key)
        if key in STRUCTURAL_CATALOG_KEYS:
            return FeatureAction.ACCEPT
        action = self.rules.get(key, self.default)
        if action is FeatureAction.ACCEPT and self.strict:
            return FeatureAction.WARN
        return action

    def with_rules(
        self,
        *,
        accept: Iterable[str] = (),
        warn: Iterable[str] = (),
        reject: Iterable[str] = (),
        strict: bool | None = None,
    ) -> "FeaturePolicy":
        """Return a copy with extra rules; later groups override earlier ones."""

        rules = dict(self.rules)
        for keys, action in (
            (accept, FeatureAction.ACCEPT),
            (warn, FeatureAction.WARN),
            (reject, FeatureAction.REJECT),
        ):
            for key in keys:
                rules[normalize_key(key)] = action
        return replace(self, rules=rules, strict=self.strict if strict is None else strict)

    def evaluate(self, keys: Iterable[str]) -> list[tuple[str, FeatureAction]]:
        """Return the verdict for every key in ``keys``, sorted by key."""

        return [(key, self.action_for(key)) for key in sorted({normalize_key(k) for k in keys})]


class Ordering(str, Enum):
    """Sort order applied to the entries of each directory."""

    CASE_INSENSITIVE = "case-insensitive"
    CASE_SENSITIVE = "case-sensitive"
    NATURAL = "natural"

    def key(self, name: str) -> Any:
        if self is Ordering.CASE_SENSITIVE:
            return name
        if self is Ordering.NATURAL:
            parts = re.split(r"(\d+)", name.casefold())
            return [int(part) if index % 2 else part for index, part in enumerate(parts)], name
        return name.casefold(), name


__all__ = [
    "FeatureAction",
    "FeaturePolicy",
    "Ordering",
    "STRUCTURAL_CATALOG_KEYS",
    "DEFAULT_RULES",
    "normalize_key",
]
