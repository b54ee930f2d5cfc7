from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from lexspan.overlap import Segment, resolve_overlaps
from lexspan.patterns import LexicalPattern, PatternError
from lexspan.span_finder import MatchSpan, SpanFinder

LOG = logging.getLogger(__name__)

SENTIMENT_ALL = "all"


def filter_by_sentiment(patterns: Sequence[LexicalPattern], sentiment: Optional[str]) -> List[LexicalPattern]:
    """Keep patterns with the given sentiment; ``None``/``"all"`` keeps everything."""
    if not sentiment or sentiment == SENTIMENT_ALL:
        return list(patterns)
    return [p for p in patterns if p.sentiment == sentiment]


def collect_candidates(paragraph: str, patterns: Sequence[LexicalPattern]) -> List[MatchSpan]:
    """Raw spans for every pattern; malformed patterns are skipped."""
    candidates: List[MatchSpan] = []
    for pattern in patterns:
        try:
            finder = SpanFinder(paragraph, pattern)
        except PatternError as exc:
            LOG.warning("Skipping pattern %r: %s", pattern.pattern_id or pattern.text, exc)
            continue
        candidates.extend(finder)
    return candidates


def annotate_paragraph(
    paragraph: str,
    patterns: Sequence[LexicalPattern],
    sentiment: Optional[str] = None,
    paragraph_index: int = 0,
) -> List[Segment]:
    """
    Split a paragraph into literal and matched segments.

    Overlaps are resolved across all patterns jointly. The result is never
    empty: without any match the whole paragraph comes back as one literal
    segment.
    """
    fallback = [Segment(text=paragraph, start=0, end=len(paragraph))]

    active = filter_by_sentiment(patterns, sentiment)
    if not active or not paragraph:
        return fallback

    resolution = resolve_overlaps(paragraph, collect_candidates(paragraph, active))
    if not resolution.spans:
        return fallback

    counters: Dict[str, int] = {}
    segments: List[Segment] = []
    for seg in resolution.segments:
        if seg.span is not None:
            pid = seg.span.pattern.pattern_id or str(seg.span.pattern.order)
            idx = counters.get(pid, 0)
            counters[pid] = idx + 1
            seg = replace(seg, key=f"{pid}-{paragraph_index}-{idx}")
        segments.append(seg)
    return segments


def annotate_passage(
    paragraphs: Sequence[str],
    patterns: Sequence[LexicalPattern],
    sentiment: Optional[str] = None,
) -> List[List[Segment]]:
    return [
        annotate_paragraph(p, patterns, sentiment=sentiment, paragraph_index=i)
        for i, p in enumerate(paragraphs)
    ]
