"""
Product rule tables consumed by the keyword detection pass.

Rule tables are plain data owned by an external configuration directory
(``config/products/<ID>.json``). They are resolved and validated once, before
a :class:`~ad_segmenter.pipeline.Segmenter` is built, and are immutable
afterwards.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Pattern, Tuple

import yaml

from .errors import ProductRulesError

LOGGER = logging.getLogger(__name__)

Severity = Literal["high", "medium", "low"]

KNOWN_PRODUCT_IDS: Tuple[str, ...] = (
    "AI", "CA", "CH", "CK", "CR", "DS", "EA", "FS",
    "FV", "FZ", "GG", "HA", "HB", "HL", "HP", "HR",
    "HS", "HT", "JX", "KF", "KJ", "LI", "LK", "LM",
    "MD", "ME", "MI", "MW", "NM", "NO", "NW", "OO",
    "OP", "PS", "PT", "RV", "SC", "SH", "SI", "SS",
    "YS", "ZS",
)  # fmt: skip

ANNOTATION_TEMPLATE_PREFIX = "※"
_SEVERITIES = ("high", "medium", "low")


@dataclass(frozen=True, slots=True)
class AnnotationRule:
    """Whether a keyword needs a footnote, and what that footnote should say."""

    required: bool
    template: str
    severity: Severity = "medium"
    reference_knowledge: str | None = None


@dataclass(frozen=True, slots=True)
class SegmentationKeywords:
    required: Tuple[str, ...] = ()
    context_dependent: Tuple[str, ...] = ()
    prohibited: Tuple[str, ...] = ()
    compound_checks: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ProductRules:
    """Resolved, read-only rule table for a single product."""

    id: str
    name: str
    category: str
    approved_effects: str
    active_ingredient: str | None = None
    segmentation_keywords: SegmentationKeywords | None = None
    annotation_rules: Mapping[str, AnnotationRule] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def required_keywords(self) -> List[str]:
        """Keywords whose annotation rule is marked required, in declaration order."""
        return [
            keyword for keyword, rule in self.annotation_rules.items() if rule.required
        ]

    def required_keyword_patterns(self) -> List[Tuple[str, Pattern[str]]]:
        """Sentence-scoped patterns matching each required keyword.

        Matches may only begin at a sentence start, so a long line without
        terminators is scanned once per keyword rather than once per offset.
        """
        return [
            (
                keyword,
                re.compile(rf"(?<![^。\n])[^。\n]*{re.escape(keyword)}[^。\n]*"),
            )
            for keyword in self.required_keywords()
        ]


@dataclass(slots=True)
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_product_rules(data: Mapping[str, Any]) -> ValidationResult:
    """Check a raw product rule mapping for structural problems."""
    result = ValidationResult()
    errors, warnings = result.errors, result.warnings

    for key in ("id", "name", "category", "approvedEffects"):
        if not data.get(key):
            errors.append(f"Missing required field: {key}")

    keywords = data.get("segmentationKeywords")
    annotation_rules = data.get("annotationRules")
    if not keywords and not annotation_rules:
        errors.append(
            "At least one of segmentationKeywords or annotationRules must be defined"
        )

    product_id = data.get("id")
    if product_id and product_id not in KNOWN_PRODUCT_IDS:
        errors.append(
            f"Invalid product ID: {product_id}. "
            f"Must be one of: {', '.join(KNOWN_PRODUCT_IDS)}"
        )

    if keywords is not None and not isinstance(keywords, Mapping):
        errors.append("segmentationKeywords must be a mapping")
        keywords = None
    if annotation_rules is not None and not isinstance(annotation_rules, Mapping):
        errors.append("annotationRules must be a mapping")
        annotation_rules = None

    if keywords:
        required = list(keywords.get("required") or [])
        combined = (
            required
            + list(keywords.get("contextDependent") or [])
            + list(keywords.get("prohibited") or [])
        )
        seen: set[str] = set()
        duplicates: List[str] = []
        for keyword in combined:
            if keyword in seen and keyword not in duplicates:
                duplicates.append(keyword)
            seen.add(keyword)
        if duplicates:
            errors.append(f"Duplicate keywords found: {', '.join(duplicates)}")
        if "required" in keywords and not required:
            warnings.append("segmentationKeywords.required is empty")
        if "prohibited" in keywords and not keywords.get("prohibited"):
            warnings.append(
                "segmentationKeywords.prohibited is empty (unusual but allowed)"
            )

    if annotation_rules and keywords:
        for keyword in keywords.get("required") or []:
            if keyword not in annotation_rules:
                warnings.append(
                    f"Annotation rule not defined for required keyword: {keyword}"
                )

    for keyword, rule in (annotation_rules or {}).items():
        if not str(keyword).strip():
            # An empty keyword would match every sentence.
            errors.append("Empty keyword in annotationRules")
            continue
        if not isinstance(rule, Mapping):
            errors.append(f"Annotation rule for {keyword} must be a mapping")
            continue
        template = str(rule.get("template") or "")
        if not template.strip():
            errors.append(f"Empty annotation template for keyword: {keyword}")
        elif not template.startswith(ANNOTATION_TEMPLATE_PREFIX):
            warnings.append(
                f'Annotation template for "{keyword}" does not start with '
                f"{ANNOTATION_TEMPLATE_PREFIX}: {template}"
            )
        severity = rule.get("severity", "medium")
        if severity not in _SEVERITIES:
            errors.append(f"Invalid severity for keyword {keyword}: {severity}")

    return result


def product_rules_from_dict(data: Mapping[str, Any]) -> ProductRules:
    """Validate a raw mapping and freeze it into ProductRules."""
    if not isinstance(data, Mapping):
        raise ProductRulesError("Product rules must be a mapping.")
    validation = validate_product_rules(data)
    if not validation.valid:
        raise ProductRulesError(
            f"Product rules validation failed for {data.get('id')}:\n"
            + "\n".join(validation.errors)
        )
    for warning in validation.warnings:
        LOGGER.warning("Product rules %s: %s", data.get("id"), warning)

    return ProductRules(
        id=str(data["id"]),
        name=str(data["name"]),
        category=str(data["category"]),
        approved_effects=str(data["approvedEffects"]),
        active_ingredient=data.get("activeIngredient"),
        segmentation_keywords=_build_keywords(data.get("segmentationKeywords")),
        annotation_rules=MappingProxyType(
            {
                str(keyword): _build_annotation_rule(rule)
                for keyword, rule in (data.get("annotationRules") or {}).items()
            }
        ),
    )


def read_rule_file(path: str | Path) -> Mapping[str, Any]:
    """Parse a JSON or YAML rule file into a raw mapping without validating it."""
    path = Path(path)
    if not path.exists():
        raise ProductRulesError(f"Product rules not found: {path}")
    contents = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            parsed = yaml.safe_load(contents)
        else:
            parsed = json.loads(contents)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ProductRulesError(f"Invalid rule file {path}: {exc}") from exc
    if not isinstance(parsed, Mapping):
        raise ProductRulesError(f"Rule file {path} must define a mapping.")
    return parsed


def load_product_rules(path: str | Path) -> ProductRules:
    """Load product rules from a JSON or YAML file."""
    rules = product_rules_from_dict(read_rule_file(path))
    LOGGER.info("Loaded product rules for %s: %s", rules.id, rules.name)
    return rules


def load_product_rules_for(product_id: str, rules_dir: str | Path) -> ProductRules:
    """Resolve ``<rules_dir>/<product_id>.json`` into ProductRules."""
    path = Path(rules_dir) / f"{product_id}.json"
    if not path.exists():
        raise ProductRulesError(
            f"Product rules not found for {product_id}. Please create {path}"
        )
    rules = load_product_rules(path)
    if rules.id != product_id:
        raise ProductRulesError(
            f"Rule file {path} declares id {rules.id}, expected {product_id}"
        )
    return rules


def load_all_product_rules(rules_dir: str | Path) -> Dict[str, ProductRules]:
    """Load every known product present in rules_dir, skipping broken ones."""
    loaded: Dict[str, ProductRules] = {}
    for product_id in KNOWN_PRODUCT_IDS:
        try:
            loaded[product_id] = load_product_rules_for(product_id, rules_dir)
        except ProductRulesError as exc:
            LOGGER.warning("Skipping %s: %s", product_id, exc)
    return loaded


def _build_keywords(data: Mapping[str, Any] | None) -> SegmentationKeywords | None:
    if not data:
        return None
    return SegmentationKeywords(
        required=tuple(data.get("required") or ()),
        context_dependent=tuple(data.get("contextDependent") or ()),
        prohibited=tuple(data.get("prohibited") or ()),
        compound_checks=tuple(data.get("compoundChecks") or ()),
    )


def _build_annotation_rule(data: Mapping[str, Any]) -> AnnotationRule:
    return AnnotationRule(
        required=bool(data.get("required", False)),
        template=str(data.get("template", "")),
        severity=data.get("severity", "medium"),
        reference_knowledge=data.get("referenceKnowledge"),
    )
