"""
Overlap resolution for candidate match spans.

Candidates may come from many patterns and may overlap each other. The
resolver keeps a non-overlapping subset (longest lexeme first, then
first-registered pattern, then leftmost) and rebuilds the text as an
ordered list of literal and matched segments.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from lexspan.span_finder import MatchSpan


@dataclass(frozen=True)
class Segment:
    """A slice of the source text, either literal or backed by a match."""
    text: str
    start: int
    end: int
    span: Optional[MatchSpan] = None
    key: Optional[str] = None

    @property
    def is_match(self) -> bool:
        return self.span is not None


@dataclass
class Resolution:
    spans: List[MatchSpan] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)


def spans_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """True if half-open intervals intersect (containment included)."""
    return max(start1, start2) < min(end1, end2)


def priority_key(span: MatchSpan) -> Tuple[int, int, int]:
    return (-len(span.pattern.search_key), span.pattern.order, span.start)


def select_spans(candidates: Iterable[MatchSpan]) -> List[MatchSpan]:
    """
    Greedy selection in priority order; a candidate that intersects any
    accepted span is dropped, never trimmed.

    Returns accepted spans sorted by start.
    """
    accepted: List[MatchSpan] = []
    for cand in sorted(candidates, key=priority_key):
        if any(spans_overlap(cand.start, cand.end, a.start, a.end) for a in accepted):
            continue
        accepted.append(cand)
    return sorted(accepted, key=lambda s: s.start)


def build_segments(text: str, spans: List[MatchSpan]) -> List[Segment]:
    """
    Assemble segments right-to-left: for each span (descending start) the
    literal text after it goes first, then the span; leading literal last.
    """
    segments: List[Segment] = []
    last_end = len(text)

    for span in sorted(spans, key=lambda s: s.start, reverse=True):
        if last_end > span.end:
            segments.insert(0, Segment(text=text[span.end:last_end], start=span.end, end=last_end))
        segments.insert(0, Segment(text=text[span.start:span.end], start=span.start, end=span.end, span=span))
        last_end = span.start

    if last_end > 0:
        segments.insert(0, Segment(text=text[:last_end], start=0, end=last_end))

    return segments


def resolve_overlaps(text: str, candidates: Iterable[MatchSpan]) -> Resolution:
    spans = select_spans(candidates)
    return Resolution(spans=spans, segments=build_segments(text, spans))
