"""
Lexer for advertisement copy.

Spans are claimed in precedence order: structural delimiters (``【...】``),
then footnote definitions, then bare footnote markers. Whatever text is left
between claimed spans is split into paragraphs and then sentences.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from typing import List, Sequence

from .intervals import SpanIndex
from .models import Token, TokenKind, TokenMetadata

STRUCTURAL_PRIORITY = 100
ANNOTATION_PRIORITY = 90

MARKER_GLYPHS = "※＊*"
STRUCTURAL_RE = re.compile(r"【[^】]+】")
# ※1：definition (colon form, runs to end of line)
ANNOTATION_COLON_RE = re.compile(rf"[{MARKER_GLYPHS}](\d+)[：:][^\n]*")
# ※1definition (line-start form, runs to the next marker or newline)
ANNOTATION_LINE_RE = re.compile(
    rf"^[{MARKER_GLYPHS}](\d+)(?![\d：:])(?:(?![{MARKER_GLYPHS}]\d)[^\n])+",
    re.MULTILINE,
)
MARKER_RE = re.compile(rf"[{MARKER_GLYPHS}](\d+)")
MARKER_COLONS = "：:"
PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
SENTENCE_RE = re.compile(
    r"(?P<sentence>[^。．！？\n]*[。．！？]+[」』）)]*\n*)"
    r"|(?P<line>[^。．！？\n]+\n+)"
    r"|(?P<text>[^。．！？\n]+)"
    r"|(?P<blank>\n+)"
)


class _LineIndex:
    """Map character offsets to 1-based line numbers."""

    def __init__(self, text: str) -> None:
        self._starts = [0] + [match.end() for match in re.finditer("\n", text)]

    def line_of(self, offset: int) -> int:
        return bisect_right(self._starts, offset)


def tokenize(text: str) -> List[Token]:
    """Split text into an ordered, non-overlapping stream of typed tokens."""
    if not text:
        return []

    lines = _LineIndex(text)
    structural = extract_structural_delimiters(text, lines)
    annotation_texts = extract_annotation_texts(text, lines, claimed=structural)
    markers = extract_annotation_markers(
        text, lines, claimed=structural + annotation_texts
    )
    anchored = sorted(structural + annotation_texts + markers, key=lambda t: t.start)

    tokens: List[Token] = []
    cursor = 0
    for token in anchored:
        if token.start > cursor:
            tokens.extend(_tokenize_gap(text, cursor, token.start, lines))
        tokens.append(token)
        cursor = token.end
    if cursor < len(text):
        tokens.extend(_tokenize_gap(text, cursor, len(text), lines))
    return tokens


def extract_structural_delimiters(
    text: str, lines: _LineIndex | None = None
) -> List[Token]:
    """Find bracketed header spans such as ``【美白効果】``."""
    lines = lines or _LineIndex(text)
    return [
        Token(
            kind="structural-delimiter",
            text=match.group(0),
            start=match.start(),
            end=match.end(),
            line=lines.line_of(match.start()),
            metadata=TokenMetadata(priority=STRUCTURAL_PRIORITY),
        )
        for match in STRUCTURAL_RE.finditer(text)
    ]


def extract_annotation_texts(
    text: str,
    lines: _LineIndex | None = None,
    claimed: Sequence[Token] = (),
) -> List[Token]:
    """
    Find footnote definitions in both supported surface forms.

    Colon-form definitions are indexed first; a line-start definition is only
    kept when it does not overlap a colon-form one. Neither form may cut into
    an already claimed span.
    """
    lines = lines or _LineIndex(text)
    blocked = SpanIndex((t.start, t.end) for t in claimed)
    found: List[Token] = []
    for pattern in (ANNOTATION_COLON_RE, ANNOTATION_LINE_RE):
        for match in pattern.finditer(text):
            start, end = match.start(), match.end()
            if blocked.overlaps(start, end):
                continue
            found.append(
                Token(
                    kind="annotation-text",
                    text=match.group(0),
                    start=start,
                    end=end,
                    line=lines.line_of(start),
                    metadata=TokenMetadata(
                        annotation_number=match.group(1),
                        priority=ANNOTATION_PRIORITY,
                    ),
                )
            )
            blocked.add(start, end)
    found.sort(key=lambda t: t.start)
    return found


def extract_annotation_markers(
    text: str,
    lines: _LineIndex | None = None,
    claimed: Sequence[Token] = (),
) -> List[Token]:
    """Find bare footnote references that no definition has already consumed."""
    lines = lines or _LineIndex(text)
    blocked = SpanIndex((t.start, t.end) for t in claimed)
    markers: List[Token] = []
    for match in MARKER_RE.finditer(text):
        start, end = match.start(), match.end()
        if blocked.overlaps(start, end):
            continue
        if end < len(text) and text[end] in MARKER_COLONS:
            continue
        markers.append(
            Token(
                kind="annotation-marker",
                text=match.group(0),
                start=start,
                end=end,
                line=lines.line_of(start),
                metadata=TokenMetadata(
                    annotation_number=match.group(1),
                    priority=ANNOTATION_PRIORITY,
                ),
            )
        )
    return markers


def _tokenize_gap(text: str, start: int, end: int, lines: _LineIndex) -> List[Token]:
    if not text[start:end].strip():
        return []
    tokens: List[Token] = []
    cursor = start
    for brk in PARAGRAPH_BREAK_RE.finditer(text, start, end):
        tokens.extend(_split_sentences(text, cursor, brk.start(), lines))
        cursor = brk.end()
    tokens.extend(_split_sentences(text, cursor, end, lines))
    return tokens


def _split_sentences(
    text: str, start: int, end: int, lines: _LineIndex
) -> List[Token]:
    tokens: List[Token] = []
    for match in SENTENCE_RE.finditer(text, start, end):
        piece = match.group(0)
        if not piece.strip():
            continue
        kind: TokenKind = "text" if match.lastgroup == "text" else "sentence"
        tokens.append(
            Token(
                kind=kind,
                text=piece,
                start=match.start(),
                end=match.end(),
                line=lines.line_of(match.start()),
            )
        )
    return tokens


def format_tokens(tokens: Sequence[Token]) -> str:
    """Render tokens as a fixed-width table for debug logging."""
    rows = []
    for index, token in enumerate(tokens):
        preview = token.text[:30].replace("\n", "\\n")
        number = token.annotation_number
        suffix = f" #{number}" if number else ""
        rows.append(
            f'[{index}] {token.kind:<20} | "{preview}" | '
            f"{token.start}-{token.end} L{token.line}{suffix}"
        )
    return "\n".join(rows)
