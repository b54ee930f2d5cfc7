from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from unidecode import unidecode

LOG = logging.getLogger(__name__)

GAP_MARKER = " ... "
WILDCARD = "*"

# Part-of-speech annotations like (n), (adj), (v.)
_RE_POS_TAG = re.compile(r"\s*\([a-zA-Z]+\.?\)", re.IGNORECASE)
_RE_PARENS = re.compile(r"[()]")
_RE_MULTISPACE = re.compile(r"\s+")


class PatternError(ValueError):
    """Raised when a lexical pattern cannot produce a search expression."""


class PatternKind(str, Enum):
    LITERAL = "literal"
    WILDCARD = "wildcard"
    GAP = "gap"


@dataclass(frozen=True)
class LexicalPattern:
    """
    A target phrase to look for inside paragraph text.

    ``order`` is the registration index; lower registers first and wins
    ties during overlap resolution.
    """
    text: str
    pattern_id: str = ""
    sentiment: Optional[str] = None
    order: int = 0

    @property
    def kind(self) -> PatternKind:
        if GAP_MARKER in self.text:
            return PatternKind.GAP
        if WILDCARD in self.text:
            return PatternKind.WILDCARD
        return PatternKind.LITERAL

    @property
    def search_key(self) -> str:
        """Pattern text with grammatical annotations and parentheses removed."""
        if self.kind == PatternKind.GAP:
            parts = [p.strip() for p in self.text.split(GAP_MARKER)]
            return GAP_MARKER.join(p for p in parts if p)
        key = _RE_POS_TAG.sub("", self.text).strip()
        key = _RE_PARENS.sub("", key)
        return _RE_MULTISPACE.sub(" ", key).strip()

    @classmethod
    def from_item(cls, item: Dict[str, Any], order: int = 0) -> LexicalPattern:
        """Build a pattern from a persisted lexical item dictionary."""
        annotation = item.get("phase2Annotation") or {}
        sentiment = annotation.get("sentiment") if isinstance(annotation, dict) else None
        return cls(
            text=str(item.get("targetLexeme") or ""),
            pattern_id=str(item.get("id", "")),
            sentiment=sentiment or None,
            order=order,
        )


def compile_pattern(pattern: LexicalPattern) -> re.Pattern:
    """
    Turn a pattern into a case-insensitive regular expression.

    - GAP ("A ... B"): A, then anything (non-greedy), then B.
    - WILDCARD: ``*`` expands to zero or more word characters, word-bounded.
    - LITERAL: escaped literal, word-bounded.

    Raises:
        PatternError: if nothing searchable is left after stripping annotations.
    """
    key = pattern.search_key
    if not key:
        raise PatternError(f"Empty search key for pattern {pattern.text!r}")

    kind = pattern.kind
    if kind == PatternKind.GAP:
        parts = [re.escape(p) for p in key.split(GAP_MARKER)]
        if len(parts) < 2:
            # Only one side survived; degrade to a literal search
            return re.compile(_bounded(parts[0]), re.IGNORECASE)
        return re.compile("(.*?)".join(parts), re.IGNORECASE)

    escaped = re.escape(key)
    if kind == PatternKind.WILDCARD:
        escaped = escaped.replace(re.escape(WILDCARD), r"\w*")
        if not escaped.replace(r"\w*", ""):
            raise PatternError(f"Wildcard-only pattern {pattern.text!r}")
    return re.compile(_bounded(escaped), re.IGNORECASE)


def _bounded(expr: str) -> str:
    return rf"(?<!\w){expr}(?!\w)"


def normalize_key(text: str) -> str:
    """Case/accent-insensitive comparison key."""
    return _RE_MULTISPACE.sub(" ", unidecode((text or "").lower())).strip()


def load_patterns(items: Iterable[Dict[str, Any]]) -> List[LexicalPattern]:
    """
    Build patterns from lexical items, in registration order.

    Items whose normalized target duplicates an earlier one are dropped,
    keeping the first (higher priority) registration.
    """
    patterns: List[LexicalPattern] = []
    seen: Set[str] = set()

    for item in items:
        pattern = LexicalPattern.from_item(item, order=len(patterns))
        key = normalize_key(pattern.search_key)
        if not key:
            LOG.warning("Skipping lexical item %r: empty target", item.get("id"))
            continue
        if key in seen:
            continue
        seen.add(key)
        patterns.append(pattern)

    return patterns
