"""
Half-open interval helpers shared by the tokenizer and the segment assembler.

Overlap deduplication is a greedy interval-scheduling pass: intervals are
visited by descending priority and each one is accepted unless it overlaps an
already-accepted interval by more than ``threshold`` of the smaller span.

Both the scheduler and the trimming pass keep their accepted spans in lists
sorted by start, so each lookup touches only the spans that actually overlap.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class Interval:
    start: int
    end: int
    priority: int = 0
    index: int = 0

    @property
    def length(self) -> int:
        return self.end - self.start


class SpanIndex:
    """
    Sorted, pairwise-disjoint half-open spans.

    Because the spans never overlap, their ends are sorted as well, so the
    spans intersecting a query are one contiguous run found by bisection.
    """

    def __init__(self, spans: Iterable[Tuple[int, int]] = ()) -> None:
        self._starts: List[int] = []
        self._ends: List[int] = []
        for start, end in spans:
            self.add(start, end)

    def __len__(self) -> int:
        return len(self._starts)

    def _run(self, start: int, end: int) -> Tuple[int, int]:
        return bisect_right(self._ends, start), bisect_left(self._starts, end)

    def overlaps(self, start: int, end: int) -> bool:
        lo, hi = self._run(start, end)
        return lo < hi

    def add(self, start: int, end: int) -> None:
        """Insert a span; the caller guarantees it overlaps nothing indexed."""
        if end <= start:
            return
        index = bisect_left(self._starts, start)
        self._starts.insert(index, start)
        self._ends.insert(index, end)

    def clip(self, start: int, end: int) -> Tuple[int, int]:
        """
        Cut ``[start, end)`` down to its first free run.

        A span indexed across ``start`` pushes the start to its end; the next
        indexed span then caps the end. The result may be empty.
        """
        lo, hi = self._run(start, end)
        if lo < hi and self._starts[lo] <= start:
            start = self._ends[lo]
            lo += 1
        if lo < hi:
            end = min(end, self._starts[lo])
        return start, end


def overlap_length(a_start: int, a_end: int, b_start: int, b_end: int) -> int:
    return max(0, min(a_end, b_end) - max(a_start, b_start))


def spans_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and b_start < a_end


def overlap_ratio(a: Interval, b: Interval) -> float:
    """Overlap length divided by the smaller of the two span lengths."""
    shortest = min(a.length, b.length)
    if shortest <= 0:
        return 0.0
    return overlap_length(a.start, a.end, b.start, b.end) / shortest


def select_by_priority(
    intervals: Sequence[Interval], threshold: float = 0.5
) -> List[Interval]:
    """
    Greedy priority scheduling over possibly overlapping intervals.

    Intervals are processed by descending priority; ties keep input order.
    An interval is rejected if its overlap ratio with any accepted interval
    exceeds ``threshold``. Rejected intervals are dropped whole, never
    truncated. The accepted intervals are returned in acceptance order.

    Below a threshold of 1.0 no accepted interval can contain another, so
    ordering the accepted set by start orders it by end too. The accepted
    intervals overlapping a candidate are then one contiguous run.
    """
    ordered = sorted(intervals, key=lambda item: -item.priority)
    if threshold >= 1.0:
        return ordered
    accepted: List[Interval] = []
    starts: List[int] = []
    ends: List[int] = []
    placed: List[Interval] = []
    for candidate in ordered:
        lo = bisect_right(ends, candidate.start)
        hi = bisect_left(starts, candidate.end)
        if any(overlap_ratio(candidate, placed[i]) > threshold for i in range(lo, hi)):
            continue
        accepted.append(candidate)
        if candidate.length <= 0:
            continue
        index = bisect_left(starts, candidate.start)
        starts.insert(index, candidate.start)
        ends.insert(index, candidate.end)
        placed.insert(index, candidate)
    return accepted


def trim_overlaps(accepted: Sequence[Interval]) -> List[Interval]:
    """
    Clip each interval against every interval placed before it.

    ``select_by_priority`` tolerates overlaps up to its threshold; this pass
    removes what is left so the result is pairwise disjoint. Earlier
    intervals (higher priority) keep their full span. An interval clipped to
    nothing is dropped.
    """
    index = SpanIndex()
    placed: List[Interval] = []
    for item in accepted:
        start, end = index.clip(item.start, item.end)
        if start < end:
            index.add(start, end)
            placed.append(Interval(start, end, item.priority, item.index))
    return placed


def merge_spans(spans: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Union of half-open spans as a sorted list of disjoint spans."""
    merged: List[Tuple[int, int]] = []
    for start, end in sorted(spans):
        if end <= start:
            continue
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def coverage_ratio(spans: Iterable[Tuple[int, int]], total_length: int) -> float:
    """Fraction of ``range(total_length)`` covered by the union of spans."""
    if total_length <= 0:
        return 1.0
    covered = sum(
        min(end, total_length) - max(start, 0)
        for start, end in merge_spans(spans)
        if end > 0 and start < total_length
    )
    return covered / total_length
