"""
Candidate generation.

Each detection pass is independent and returns its own list; ``detect``
concatenates them and stable-sorts by descending priority. Regex passes run
over a projection of the token stream in which every token sits at its
original offset, so a match's character range maps straight back to the
tokens it touches.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import replace
from typing import Iterator, List, Pattern, Sequence, Set, Tuple

from .catalog import PatternCatalog, PatternRule, default_pattern_catalog
from .errors import ProductRulesError
from .models import Candidate, Token, TokenMetadata
from .rules import ProductRules

STRUCTURAL_PRIORITY = 100
KEYWORD_PRIORITY = 80
KEYWORD_IMPORTANCE = 0.85
SENTENCE_PRIORITY = 10
MARKER_PRIORITY = 5
ANNOTATION_TEXT_PRIORITY = 15

# Characters standing in for dropped whitespace gaps in the projection.
GAP_FILL = "\n"


class TokenView:
    """Token stream projected back onto source offsets."""

    def __init__(self, tokens: Sequence[Token]) -> None:
        self.tokens = list(tokens)
        self._ends = [token.end for token in self.tokens]
        parts: List[str] = []
        cursor = 0
        for token in self.tokens:
            parts.append(GAP_FILL * (token.start - cursor))
            parts.append(token.text)
            cursor = token.end
        self.text = "".join(parts)

    def covering(self, start: int, end: int) -> Tuple[Token, ...]:
        """Tokens whose span intersects ``[start, end)``."""
        covered: List[Token] = []
        index = bisect_right(self._ends, start)
        while index < len(self.tokens) and self.tokens[index].start < end:
            covered.append(self.tokens[index])
            index += 1
        return tuple(covered)

    def matches(self, pattern: Pattern[str]) -> Iterator[Tuple[Token, ...]]:
        for match in pattern.finditer(self.text):
            if match.end() == match.start():
                continue
            covered = self.covering(match.start(), match.end())
            if covered:
                yield covered


def detect(
    tokens: Sequence[Token],
    rules: ProductRules,
    catalog: PatternCatalog | None = None,
) -> List[Candidate]:
    """Run every detection pass and return candidates by descending priority."""
    if not isinstance(rules, ProductRules):
        raise ProductRulesError(
            f"detect() requires resolved ProductRules, got {type(rules).__name__}"
        )
    catalog = catalog or default_pattern_catalog()
    view = TokenView(tokens)

    commercial = detect_commercial_patterns(view, catalog)
    candidates: List[Candidate] = []
    candidates.extend(detect_structural_delimiters(tokens))
    candidates.extend(commercial)
    candidates.extend(detect_price_mentions(view, catalog, claimed=commercial))
    candidates.extend(detect_product_keywords(view, rules))
    candidates.extend(detect_fallback(tokens))
    candidates.sort(key=lambda candidate: -candidate.priority)
    return candidates


def detect_structural_delimiters(tokens: Sequence[Token]) -> List[Candidate]:
    return [
        Candidate(
            tokens=(token,),
            type="claim",
            importance=1.0,
            priority=STRUCTURAL_PRIORITY,
            source="structural",
        )
        for token in tokens
        if token.kind == "structural-delimiter"
    ]


def detect_commercial_patterns(
    view: TokenView, catalog: PatternCatalog
) -> List[Candidate]:
    """Urgency, scarcity and free/refund phrasing regulated by commercial law."""
    candidates: List[Candidate] = []
    for rule in catalog.by_kind("commercial"):
        candidates.extend(_candidates_for_rule(view, rule))
    return candidates


def detect_price_mentions(
    view: TokenView,
    catalog: PatternCatalog,
    claimed: Sequence[Candidate] = (),
) -> List[Candidate]:
    """Bare price mentions that no commercial pattern already covers."""
    claimed_spans: Set[Tuple[int, int]] = {
        (token.start, token.end) for candidate in claimed for token in candidate.tokens
    }
    candidates: List[Candidate] = []
    for rule in catalog.by_kind("price"):
        for candidate in _candidates_for_rule(view, rule):
            if any((t.start, t.end) in claimed_spans for t in candidate.tokens):
                continue
            candidates.append(candidate)
    return candidates


def detect_product_keywords(view: TokenView, rules: ProductRules) -> List[Candidate]:
    """Sentences containing a keyword the product requires an annotation for."""
    candidates: List[Candidate] = []
    for keyword, pattern in rules.required_keyword_patterns():
        for covered in view.matches(pattern):
            candidates.append(
                Candidate(
                    tokens=tag_keyword(covered, keyword),
                    type="claim",
                    importance=KEYWORD_IMPORTANCE,
                    priority=KEYWORD_PRIORITY,
                    source=f"keyword:{keyword}",
                )
            )
    return candidates


def tag_keyword(tokens: Sequence[Token], keyword: str) -> Tuple[Token, ...]:
    """Copy tokens, recording the keyword on each one that contains it."""
    return tuple(
        replace(
            token,
            metadata=replace(token.metadata or TokenMetadata(), keyword=keyword),
        )
        if keyword in token.text
        else token
        for token in tokens
    )


def detect_fallback(tokens: Sequence[Token]) -> List[Candidate]:
    """One low-priority candidate per remaining token so nothing goes uncovered."""
    candidates: List[Candidate] = []
    for token in tokens:
        if token.is_blank():
            continue
        if token.kind in ("sentence", "text", "paragraph"):
            candidates.append(
                Candidate(
                    tokens=(token,),
                    type="explanation",
                    importance=0.5,
                    priority=SENTENCE_PRIORITY,
                    source="fallback",
                )
            )
        elif token.kind == "annotation-marker":
            candidates.append(
                Candidate(
                    tokens=(token,),
                    type="explanation",
                    importance=0.3,
                    priority=MARKER_PRIORITY,
                    source="fallback",
                )
            )
        elif token.kind == "annotation-text":
            candidates.append(
                Candidate(
                    tokens=(token,),
                    type="evidence",
                    importance=0.7,
                    priority=ANNOTATION_TEXT_PRIORITY,
                    source="fallback",
                )
            )
    return candidates


def _candidates_for_rule(view: TokenView, rule: PatternRule) -> List[Candidate]:
    return [
        Candidate(
            tokens=covered,
            type=rule.type,
            importance=rule.importance,
            priority=rule.priority,
            source=rule.name,
        )
        for covered in view.matches(rule.pattern)
    ]
