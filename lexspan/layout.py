from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

_RE_WORD = re.compile(r"\S+")

UNRESOLVED: Tuple[int, int] = (-1, -1)


@dataclass
class DocumentLayout:
    """
    Paragraphs of a passage and their flattened concatenation.

    The flattened text is the paragraphs joined with no separator, so the
    base offset of paragraph ``p`` is the summed length of paragraphs
    ``0..p-1``. Matcher offsets (paragraph-relative) and selection offsets
    (absolute) meet in this one coordinate space.
    """
    paragraphs: Sequence[str]
    text: str = field(init=False)
    bases: List[int] = field(init=False)

    def __post_init__(self):
        self.paragraphs = list(self.paragraphs)
        self.bases = []
        total = 0
        for p in self.paragraphs:
            self.bases.append(total)
            total += len(p)
        self.text = "".join(self.paragraphs)

    def paragraph_base(self, paragraph_index: int) -> int:
        if not 0 <= paragraph_index < len(self.paragraphs):
            raise IndexError(f"Paragraph {paragraph_index} out of range")
        return self.bases[paragraph_index]

    def absolute(self, paragraph_index: int, relative: int) -> int:
        return self.paragraph_base(paragraph_index) + relative

    def paragraph_of(self, offset: int) -> int:
        """Index of the paragraph holding absolute ``offset`` (-1 if outside)."""
        for i in range(len(self.paragraphs) - 1, -1, -1):
            if self.bases[i] <= offset < self.bases[i] + len(self.paragraphs[i]):
                return i
        return -1

    def words(self, paragraph_index: int) -> List[Tuple[int, int]]:
        """Paragraph-relative ``(start, end)`` of each whitespace-delimited word."""
        return [(m.start(), m.end()) for m in _RE_WORD.finditer(self.paragraphs[paragraph_index])]

    def resolve_word(self, paragraph_index: int, position: int, word: Optional[str] = None) -> Tuple[int, int]:
        """
        Absolute offsets of the ``position``-th word of a paragraph.

        When ``word`` is given and sits inside the token (e.g. the token
        carries punctuation), the offsets cover just the word. Returns
        ``(-1, -1)`` for a paragraph or position that no longer exists.
        """
        if not 0 <= paragraph_index < len(self.paragraphs) or position < 0:
            return UNRESOLVED
        tokens = self.words(paragraph_index)
        if position >= len(tokens):
            return UNRESOLVED

        tok_start, tok_end = tokens[position]
        base = self.bases[paragraph_index]
        if word:
            idx = self.paragraphs[paragraph_index][tok_start:tok_end].find(word)
            if idx != -1:
                start = base + tok_start + idx
                return start, start + len(word)
        return base + tok_start, base + tok_end

    def find_text(self, text: str, paragraph_hint: Optional[int] = None) -> Tuple[int, int]:
        """
        Text-search fallback for tokens whose anchor went stale.

        Looks inside the hinted paragraph first, then the whole document,
        case-sensitive before case-insensitive.
        """
        if not text:
            return UNRESOLVED

        windows: List[Tuple[int, int]] = []
        if paragraph_hint is not None and 0 <= paragraph_hint < len(self.paragraphs):
            base = self.bases[paragraph_hint]
            windows.append((base, base + len(self.paragraphs[paragraph_hint])))
        windows.append((0, len(self.text)))

        for flags in (0, re.IGNORECASE):
            pattern = re.compile(re.escape(text), flags)
            for lo, hi in windows:
                m = pattern.search(self.text, lo, hi)
                if m:
                    return m.start(), m.end()
        return UNRESOLVED
