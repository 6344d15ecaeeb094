from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal, Mapping, Pattern, Tuple

import yaml

from .errors import ProductRulesError
from .models import CandidateType

PatternKind = Literal["commercial", "price"]

DEFAULT_CATALOG_RESOURCE = "commercial_patterns.yaml"
_PATTERN_KINDS = ("commercial", "price")
_CANDIDATE_TYPES = ("claim", "explanation", "evidence", "cta", "disclaimer")


@dataclass(frozen=True, slots=True)
class PatternRule:
    """A compiled detector for one commercial-law phrasing."""

    name: str
    pattern: Pattern[str]
    kind: PatternKind
    type: CandidateType
    importance: float
    priority: int


@dataclass(frozen=True, slots=True)
class PatternCatalog:
    """Versioned, immutable set of pattern rules."""

    version: int
    rules: Tuple[PatternRule, ...]

    def by_kind(self, kind: PatternKind) -> Tuple[PatternRule, ...]:
        return tuple(rule for rule in self.rules if rule.kind == kind)


def catalog_from_dict(data: Mapping[str, Any]) -> PatternCatalog:
    """Compile a raw catalog mapping, raising ProductRulesError on bad entries."""
    if not isinstance(data, Mapping):
        raise ProductRulesError("Pattern catalog must be a mapping.")
    entries = data.get("patterns")
    if not isinstance(entries, list):
        raise ProductRulesError("Pattern catalog must define a 'patterns' list.")
    rules = tuple(_build_rule(index, entry) for index, entry in enumerate(entries))
    return PatternCatalog(version=int(data.get("version", 1)), rules=rules)


def load_pattern_catalog(path: str | Path) -> PatternCatalog:
    """Load a pattern catalog from a YAML file."""
    try:
        parsed = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ProductRulesError(f"Unable to read pattern catalog {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ProductRulesError(f"Invalid pattern catalog {path}: {exc}") from exc
    return catalog_from_dict(parsed or {})


@lru_cache(maxsize=1)
def default_pattern_catalog() -> PatternCatalog:
    """Return the catalog shipped with the package (loaded once)."""
    contents = (
        resources.files("ad_segmenter") / "data" / DEFAULT_CATALOG_RESOURCE
    ).read_text(encoding="utf-8")
    return catalog_from_dict(yaml.safe_load(contents))


def _build_rule(index: int, entry: Any) -> PatternRule:
    if not isinstance(entry, Mapping):
        raise ProductRulesError(f"Pattern entry #{index} must be a mapping.")
    missing = [key for key in ("name", "pattern", "priority") if key not in entry]
    if missing:
        raise ProductRulesError(
            f"Pattern entry #{index} missing fields: {', '.join(missing)}"
        )
    kind = entry.get("kind", "commercial")
    if kind not in _PATTERN_KINDS:
        raise ProductRulesError(f"Pattern {entry['name']}: unknown kind {kind!r}")
    candidate_type = entry.get("type", "cta")
    if candidate_type not in _CANDIDATE_TYPES:
        raise ProductRulesError(
            f"Pattern {entry['name']}: unknown type {candidate_type!r}"
        )
    try:
        compiled = re.compile(entry["pattern"])
    except re.error as exc:
        raise ProductRulesError(f"Pattern {entry['name']}: {exc}") from exc
    return PatternRule(
        name=str(entry["name"]),
        pattern=compiled,
        kind=kind,
        type=candidate_type,
        importance=float(entry.get("importance", 0.9)),
        priority=int(entry["priority"]),
    )
