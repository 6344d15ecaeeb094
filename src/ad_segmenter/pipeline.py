from __future__ import annotations

import logging
import math
import time
from typing import List

from .assembly import assemble, format_segments
from .catalog import PatternCatalog, default_pattern_catalog, load_pattern_catalog
from .config import SegmenterConfig
from .detection import detect
from .errors import ProductRulesError
from .merging import describe_annotations, merge_annotations, unresolved_markers
from .models import BenchmarkStats, DebugInfo, Segment, SegmentationResult
from .rules import ProductRules
from .tokenization import format_tokens, tokenize

LOGGER = logging.getLogger(__name__)


class Segmenter:
    """
    Rule-based segmenter bound to one product's resolved rule table.

    All configuration is resolved at construction; ``segment`` performs no
    I/O and keeps no state between calls, so one instance can be shared
    across threads.
    """

    def __init__(
        self,
        rules: ProductRules,
        config: SegmenterConfig | None = None,
        catalog: PatternCatalog | None = None,
    ) -> None:
        if rules is None:
            raise ProductRulesError("Segmenter requires product rules; got None.")
        if not isinstance(rules, ProductRules):
            raise ProductRulesError(
                f"Segmenter requires ProductRules, got {type(rules).__name__}"
            )
        self.rules = rules
        self.config = (config or SegmenterConfig()).validate()
        if catalog is None:
            if self.config.pattern_catalog_path:
                catalog = load_pattern_catalog(self.config.pattern_catalog_path)
            else:
                catalog = default_pattern_catalog()
        self.catalog = catalog

    def segment(self, text: str, debug: bool | None = None) -> SegmentationResult:
        """Split text into segments; attach intermediate state in debug mode."""
        debug = self.config.debug if debug is None else debug
        started = time.perf_counter()

        if not text or not text.strip():
            return SegmentationResult(
                segments=[],
                processing_time_ms=_elapsed_ms(started),
                token_count=0,
                coverage=1.0 if not text else 0.0,
                debug=DebugInfo(tokens=(), candidates=()) if debug else None,
            )

        tokens = tokenize(text)
        candidates = detect(tokens, self.rules, self.catalog)
        merged = merge_annotations(candidates, tokens, self.config)
        segments, coverage = assemble(merged, text, self.config)
        elapsed = _elapsed_ms(started)

        if debug:
            _log_debug_tables(tokens, merged, segments)
        orphans = unresolved_markers(tokens)
        if orphans:
            LOGGER.debug(
                "Markers without definitions: %s",
                ", ".join(marker.text for marker in orphans),
            )
        LOGGER.info(
            "Segmented %d chars: %d tokens -> %d segments in %.2fms",
            len(text),
            len(tokens),
            len(segments),
            elapsed,
        )
        return SegmentationResult(
            segments=segments,
            processing_time_ms=elapsed,
            token_count=len(tokens),
            coverage=coverage,
            debug=DebugInfo(tokens=tuple(tokens), candidates=tuple(merged))
            if debug
            else None,
        )

    def benchmark(self, text: str, iterations: int = 100) -> BenchmarkStats:
        """Time repeated segmentation of text and summarize in milliseconds."""
        if iterations < 1:
            raise ValueError("iterations must be >= 1")
        timings: List[float] = []
        for _ in range(iterations):
            started = time.perf_counter()
            self.segment(text, debug=False)
            timings.append(_elapsed_ms(started))
        timings.sort()
        return BenchmarkStats(
            avg=sum(timings) / len(timings),
            min=timings[0],
            max=timings[-1],
            p50=_percentile(timings, 0.5),
            p95=_percentile(timings, 0.95),
            p99=_percentile(timings, 0.99),
            iterations=iterations,
        )


def segment_text(
    text: str, rules: ProductRules, config: SegmenterConfig | None = None
) -> List[Segment]:
    """One-shot helper returning only the segments."""
    return Segmenter(rules, config).segment(text, debug=False).segments


def _percentile(sorted_values: List[float], quantile: float) -> float:
    index = min(len(sorted_values) - 1, math.floor(len(sorted_values) * quantile))
    return sorted_values[index]


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


def _log_debug_tables(tokens, candidates, segments) -> None:
    LOGGER.debug("Tokenization (%d tokens)\n%s", len(tokens), format_tokens(tokens))
    LOGGER.debug(
        "Merged candidates (%d)\n%s",
        len(candidates),
        "\n".join(
            f"[{i}] {c.type:<11} | priority={c.priority} | {c.source} | "
            f"{''.join(t.text for t in c.tokens)[:50]!r}"
            for i, c in enumerate(candidates)
        ),
    )
    LOGGER.debug("Annotations\n%s", describe_annotations(tokens))
    LOGGER.debug("Segments (%d)\n%s", len(segments), format_segments(segments))
