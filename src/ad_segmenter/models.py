from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Tuple

TokenKind = Literal[
    "structural-delimiter",
    "paragraph",
    "sentence",
    "annotation-marker",
    "annotation-text",
    "text",
]
CandidateType = Literal["claim", "explanation", "evidence", "cta", "disclaimer"]
SegmentType = Literal["claim", "explanation", "evidence"]

ANNOTATION_KINDS = frozenset({"annotation-marker", "annotation-text"})


@dataclass(frozen=True, slots=True)
class TokenMetadata:
    """Optional extra information attached to a token."""

    annotation_number: str | None = None
    keyword: str | None = None
    priority: int | None = None


@dataclass(frozen=True, slots=True)
class Token:
    """A typed substring of the source with inclusive-exclusive offsets."""

    kind: TokenKind
    text: str
    start: int
    end: int
    line: int
    metadata: Optional[TokenMetadata] = None

    @property
    def annotation_number(self) -> str | None:
        return self.metadata.annotation_number if self.metadata else None

    @property
    def keyword(self) -> str | None:
        return self.metadata.keyword if self.metadata else None

    def is_blank(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True, slots=True)
class Candidate:
    """A provisional, possibly overlapping segment proposal."""

    tokens: Tuple[Token, ...]
    type: CandidateType
    importance: float
    priority: int
    merged: bool = False
    annotation_markers: Tuple[str, ...] = ()
    source: str = ""

    @property
    def start(self) -> int:
        return min(token.start for token in self.tokens)

    @property
    def end(self) -> int:
        return max(token.end for token in self.tokens)

    @property
    def length(self) -> int:
        return self.end - self.start

    def is_annotation_only(self) -> bool:
        """Return True if every token is footnote material."""
        return all(token.kind in ANNOTATION_KINDS for token in self.tokens)


@dataclass(frozen=True, slots=True)
class SegmentPosition:
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class Segment:
    """Final, non-overlapping unit handed to downstream validators."""

    id: str
    text: str
    type: SegmentType
    position: SegmentPosition

    @property
    def start(self) -> int:
        return self.position.start

    @property
    def end(self) -> int:
        return self.position.end

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type,
            "position": {"start": self.position.start, "end": self.position.end},
        }


@dataclass(frozen=True, slots=True)
class DebugInfo:
    """Intermediate pipeline state exposed for tooling."""

    tokens: Tuple[Token, ...]
    candidates: Tuple[Candidate, ...]


@dataclass(frozen=True, slots=True)
class SegmentationResult:
    """Segments for one call plus timing and optional debug state."""

    segments: list[Segment]
    processing_time_ms: float
    token_count: int
    coverage: float = 1.0
    debug: DebugInfo | None = None


@dataclass(frozen=True, slots=True)
class BenchmarkStats:
    """Latency statistics in milliseconds."""

    avg: float
    min: float
    max: float
    p50: float
    p95: float
    p99: float
    iterations: int = field(default=0)

    def to_dict(self) -> dict[str, float]:
        return {
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
            "p50": self.p50,
            "p95": self.p95,
            "p99": self.p99,
            "iterations": self.iterations,
        }
