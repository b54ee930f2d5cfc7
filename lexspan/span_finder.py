from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List

from lexspan.patterns import LexicalPattern, compile_pattern


@dataclass(frozen=True)
class MatchSpan:
    """Half-open ``[start, end)`` occurrence of a pattern in one text."""
    start: int
    end: int
    text: str
    pattern: LexicalPattern

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Empty or inverted span [{self.start}, {self.end})")

    @property
    def length(self) -> int:
        return self.end - self.start


class SpanFinder:
    """
    Lazy, restartable scan of ``text`` for every occurrence of ``pattern``.

    Each iteration starts a fresh scan. Compiling the pattern happens up
    front so a malformed pattern fails before any span is produced.
    """

    def __init__(self, text: str, pattern: LexicalPattern):
        self.text = text
        self.pattern = pattern
        self._regex = compile_pattern(pattern)

    def __iter__(self) -> Iterator[MatchSpan]:
        text = self.text
        pos = 0
        while pos <= len(text):
            m = self._regex.search(text, pos)
            if m is None:
                return
            if m.end() == m.start():
                # Zero-width hit: nothing to emit, step past it
                pos = m.end() + 1
                continue
            yield MatchSpan(start=m.start(), end=m.end(), text=m.group(0), pattern=self.pattern)
            pos = m.end()


def find_spans(text: str, pattern: LexicalPattern) -> List[MatchSpan]:
    """Eagerly collect raw (possibly overlapping across patterns) spans."""
    return list(SpanFinder(text, pattern))
