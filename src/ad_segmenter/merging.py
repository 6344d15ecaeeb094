from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import replace
from typing import List, Sequence

from .config import SegmenterConfig
from .models import Candidate, Token


def merge_annotations(
    candidates: Sequence[Candidate],
    tokens: Sequence[Token],
    config: SegmenterConfig | None = None,
) -> List[Candidate]:
    """
    Absorb footnote markers that sit just after a candidate's span.

    A marker is adjacent when it starts no more than ``config.adjacency_gap``
    characters after the candidate ends. Absorbing markers raises the
    candidate's priority by ``config.marker_priority_boost``. Definition
    texts are never absorbed, so a definition never ends up inside more than
    one segment.
    """
    config = config or SegmenterConfig()
    markers = sorted(
        (token for token in tokens if token.kind == "annotation-marker"),
        key=lambda token: token.start,
    )
    starts = [marker.start for marker in markers]
    merged: List[Candidate] = []
    for candidate in candidates:
        if not candidate.tokens:
            merged.append(candidate)
            continue
        adjacent = find_adjacent_markers(
            candidate, markers, config.adjacency_gap, starts
        )
        if not adjacent:
            merged.append(candidate)
            continue
        inner = [t for t in candidate.tokens if t.kind == "annotation-marker"]
        combined = tuple(
            sorted(candidate.tokens + tuple(adjacent), key=lambda t: t.start)
        )
        merged.append(
            replace(
                candidate,
                tokens=combined,
                priority=candidate.priority + config.marker_priority_boost,
                merged=True,
                annotation_markers=tuple(
                    t.annotation_number or "" for t in inner + adjacent
                ),
            )
        )
    return merged


def find_adjacent_markers(
    candidate: Candidate,
    markers: Sequence[Token],
    max_gap: int,
    starts: Sequence[int] | None = None,
) -> List[Token]:
    """Markers starting within ``[end, end + max_gap]``; markers are start-ordered."""
    if starts is None:
        starts = [marker.start for marker in markers]
    # Nothing starting at or after the candidate's end can already belong to it.
    end = candidate.end
    lo = bisect_left(starts, end)
    hi = bisect_right(starts, end + max_gap)
    return list(markers[lo:hi])


def describe_annotations(tokens: Sequence[Token]) -> str:
    """Report which markers have a matching definition in the same text."""
    markers = [t for t in tokens if t.kind == "annotation-marker"]
    definitions = [t for t in tokens if t.kind == "annotation-text"]
    by_number = {}
    for definition in definitions:
        by_number.setdefault(definition.annotation_number, definition)

    lines = [f"Found {len(markers)} annotation markers:"]
    lines.extend(f"  ※{m.annotation_number} at position {m.start}" for m in markers)
    lines.append(f"Found {len(definitions)} annotation texts:")
    lines.extend(f'  ※{d.annotation_number}: "{d.text}"' for d in definitions)
    lines.append("Matching:")
    for marker in markers:
        definition = by_number.get(marker.annotation_number)
        if definition is None:
            lines.append(f"  ※{marker.annotation_number} -> (not found)")
        else:
            lines.append(f'  ※{marker.annotation_number} -> "{definition.text}"')
    return "\n".join(lines)


def unresolved_markers(tokens: Sequence[Token]) -> List[Token]:
    """Markers whose number has no definition anywhere in the token stream."""
    defined = {t.annotation_number for t in tokens if t.kind == "annotation-text"}
    return [
        t
        for t in tokens
        if t.kind == "annotation-marker" and t.annotation_number not in defined
    ]
