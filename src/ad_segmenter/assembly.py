from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import List, Sequence, Tuple

from .config import SegmenterConfig
from .intervals import Interval, coverage_ratio, select_by_priority, trim_overlaps
from .models import Candidate, CandidateType, Segment, SegmentPosition, SegmentType
from .tokenization import STRUCTURAL_RE

LOGGER = logging.getLogger(__name__)

TRAILING_MARKER_RE = re.compile(r"[※＊*]\d+\s*$")
# Terminators and closing brackets with nothing else but whitespace.
PUNCTUATION_ONLY_RE = re.compile(r"[。．！？」』）)\s]+")
SEGMENT_ID_TEMPLATE = "seg_{index:03d}"

_TYPE_MAP: dict[CandidateType, SegmentType] = {
    "claim": "claim",
    "explanation": "explanation",
    "evidence": "evidence",
    "cta": "claim",
    "disclaimer": "claim",
}


def build_segments(
    candidates: Sequence[Candidate],
    text: str,
    config: SegmenterConfig | None = None,
) -> List[Segment]:
    """Turn ranked candidates into ordered, non-overlapping segments."""
    segments, _ = assemble(candidates, text, config)
    return segments


def assemble(
    candidates: Sequence[Candidate],
    text: str,
    config: SegmenterConfig | None = None,
) -> Tuple[List[Segment], float]:
    """Like build_segments, but also return the coverage ratio."""
    config = config or SegmenterConfig()
    kept = filter_annotation_only(candidates)
    segments = [
        candidate_to_segment(candidate, index, text, span)
        for index, (candidate, span) in enumerate(
            place_candidates(kept, config.overlap_threshold), 1
        )
        if text[span.start : span.end].strip()
    ]
    segments = merge_fragments(
        segments, text, config.fragment_max_length, config.adjacency_gap
    )
    segments = absorb_punctuation(segments, text, config.adjacency_gap)
    segments = _renumber(segments)
    if not text:
        return segments, 1.0
    return segments, check_coverage(segments, text, config.coverage_warning_threshold)


def filter_annotation_only(candidates: Sequence[Candidate]) -> List[Candidate]:
    """Drop candidates made purely of footnote markers and definitions."""
    kept: List[Candidate] = []
    for candidate in candidates:
        if not candidate.tokens:
            continue
        if candidate.is_annotation_only():
            LOGGER.debug(
                "Filtered annotation-only candidate: %r",
                "".join(t.text for t in candidate.tokens)[:50],
            )
            continue
        kept.append(candidate)
    return kept


def deduplicate(
    candidates: Sequence[Candidate], overlap_threshold: float = 0.5
) -> List[Candidate]:
    """Keep the highest-priority candidate wherever spans overlap too much."""
    intervals = _intervals(candidates)
    return [
        candidates[interval.index]
        for interval in select_by_priority(intervals, overlap_threshold)
    ]


def place_candidates(
    candidates: Sequence[Candidate], overlap_threshold: float = 0.5
) -> List[Tuple[Candidate, Interval]]:
    """Deduplicate, clip residual overlaps, and order the survivors by offset."""
    accepted = select_by_priority(_intervals(candidates), overlap_threshold)
    placed = trim_overlaps(accepted)
    placed.sort(key=lambda interval: interval.start)
    return [(candidates[interval.index], interval) for interval in placed]


def candidate_to_segment(
    candidate: Candidate, index: int, text: str, span: Interval | None = None
) -> Segment:
    if span is None:
        start, end = candidate.start, candidate.end
    else:
        start, end = span.start, span.end
    return Segment(
        id=SEGMENT_ID_TEMPLATE.format(index=index),
        text=text[start:end],
        type=_TYPE_MAP[candidate.type],
        position=SegmentPosition(start=start, end=end),
    )


def merge_fragments(
    segments: Sequence[Segment],
    text: str,
    max_fragment_length: int = 20,
    max_gap: int = 5,
) -> List[Segment]:
    """
    Fold a short trailing fragment into a segment that ends with a footnote marker.

    For example ``"殺菌※2"`` followed by ``"する薬用ジェル"`` becomes
    ``"殺菌※2する薬用ジェル"``. Each segment absorbs at most one fragment.
    A following structural delimiter such as ``"【美白効果】"`` is never absorbed.
    """
    result: List[Segment] = []
    index = 0
    while index < len(segments):
        current = segments[index]
        following = segments[index + 1] if index + 1 < len(segments) else None
        if (
            following is not None
            and TRAILING_MARKER_RE.search(current.text)
            and len(following.text) <= max_fragment_length
            and not STRUCTURAL_RE.match(following.text)
            and following.start - current.end <= max_gap
        ):
            merged = _respan(current, current.start, following.end, text)
            LOGGER.debug(
                "Merged fragmented segments: %r + %r -> %r",
                current.text,
                following.text,
                merged.text,
            )
            result.append(merged)
            index += 2
            continue
        result.append(current)
        index += 1
    return result


def absorb_punctuation(
    segments: Sequence[Segment], text: str, max_gap: int = 5
) -> List[Segment]:
    """
    Attach segments made only of terminators to a neighbouring segment.

    Punctuation left behind by a structural delimiter or a footnote marker,
    as in ``"【新発売】！"``, joins the preceding segment when it starts
    within ``max_gap`` characters of it, and otherwise the following one.
    Nothing is prepended to a structural delimiter.
    """
    result: List[Segment] = []
    carry: Segment | None = None
    for segment in segments:
        if carry is not None:
            if segment.start - carry.end <= max_gap and not STRUCTURAL_RE.match(
                segment.text
            ):
                segment = _respan(segment, carry.start, segment.end, text)
            else:
                result.append(carry)
            carry = None
        if PUNCTUATION_ONLY_RE.fullmatch(segment.text):
            if result and segment.start - result[-1].end <= max_gap:
                LOGGER.debug(
                    "Absorbed punctuation %r into %r", segment.text, result[-1].text
                )
                result[-1] = _respan(result[-1], result[-1].start, segment.end, text)
                continue
            carry = segment
            continue
        result.append(segment)
    if carry is not None:
        result.append(carry)
    return result


def check_coverage(
    segments: Sequence[Segment], text: str, warning_threshold: float = 0.8
) -> float:
    """Return the covered fraction of text, warning when it falls below threshold."""
    coverage = coverage_ratio(((s.start, s.end) for s in segments), len(text))
    covered_chars = round(coverage * len(text))
    if coverage < warning_threshold:
        LOGGER.warning(
            "Low coverage: %.1f%% (%d/%d chars)",
            coverage * 100,
            covered_chars,
            len(text),
        )
    else:
        LOGGER.debug(
            "Coverage: %.1f%% (%d/%d chars)", coverage * 100, covered_chars, len(text)
        )
    return coverage


def format_segments(segments: Sequence[Segment]) -> str:
    """Render segments as a fixed-width table for debug logging."""
    rows = []
    for index, segment in enumerate(segments):
        span = f"{segment.start}-{segment.end}"
        preview = segment.text[:50].replace("\n", "\\n")
        rows.append(
            f'[{index}] {segment.id} | {segment.type:<11} | {span:<10} | "{preview}"'
        )
    return "\n".join(rows)


def _renumber(segments: Sequence[Segment]) -> List[Segment]:
    return [
        replace(segment, id=SEGMENT_ID_TEMPLATE.format(index=index))
        for index, segment in enumerate(segments, 1)
    ]


def _intervals(candidates: Sequence[Candidate]) -> List[Interval]:
    return [
        Interval(start=c.start, end=c.end, priority=c.priority, index=i)
        for i, c in enumerate(candidates)
    ]


def _respan(segment: Segment, start: int, end: int, text: str) -> Segment:
    return replace(
        segment, text=text[start:end], position=SegmentPosition(start=start, end=end)
    )
