# context.py
# Source-context extraction for annotated spans
# - Sentence containing the span, bounded by ". ", "! " or "? "
# - Truncated to a fixed number of words with a trailing "..."
#
# Usage:
#   context = extract_source_context(document_text, start, end)

from __future__ import annotations

import re
from typing import Optional

from lexspan.config import CONFIG, EngineConfig


# ----------------------------
# Public API
# ----------------------------

SENTENCE_DELIMITERS = (". ", "! ", "? ")
ELLIPSIS = "..."


def extract_source_context(
    text: str,
    start: int,
    end: int,
    config: Optional[EngineConfig] = None,
) -> str:
    """
    Return the sentence that contains ``text[start:end]``, truncated.

    Args:
        text: flattened document text
        start/end: absolute half-open offsets of the span

    Returns:
        The sentence (stripped), at most ``context_max_words`` words, with
        "..." appended when words were dropped. Empty string for empty text.
    """
    config = config or CONFIG
    if not text:
        return ""

    start = max(0, min(start, len(text)))
    end = max(start, min(end, len(text)))

    sentence = text[sentence_start(text, start):sentence_end(text, end)].strip()
    return truncate_words(sentence, config.context_max_words)


def sentence_start(text: str, start: int) -> int:
    """Offset just after the last delimiter before ``start`` (0 if none)."""
    before = text[:start]
    best = 0
    for delim in SENTENCE_DELIMITERS:
        idx = before.rfind(delim)
        if idx != -1:
            best = max(best, idx + len(delim))
    return best


def sentence_end(text: str, end: int) -> int:
    """Offset just after the punctuation of the first delimiter at/after ``end``."""
    best = len(text)
    for delim in SENTENCE_DELIMITERS:
        idx = text.find(delim, end)
        if idx != -1:
            best = min(best, idx + 1)
    return best


# ----------------------------
# Helpers
# ----------------------------

_RE_TRAILING_PUNCT = re.compile(r"[,.!?;:]+$")


def truncate_words(sentence: str, max_words: int) -> str:
    """Keep the first ``max_words`` words; sentences that fit come back verbatim."""
    words = [w for w in sentence.split(" ") if w.strip()]
    if len(words) <= max_words:
        return sentence
    kept = " ".join(words[:max_words])
    return _RE_TRAILING_PUNCT.sub("", kept) + ELLIPSIS


# ----------------------------
# Smoke tests (quick sanity)
# ----------------------------

if __name__ == "__main__":
    def run(text: str, span: str):
        start = text.find(span)
        print(f"{span!r:20} | {extract_source_context(text, start, start + len(span))}")

    run("He left early. She was running fast to catch the bus! Nobody saw it.", "running fast")
    run("One two three four five six seven eight nine ten eleven twelve thirteen "
        "fourteen fifteen sixteen seventeen eighteen, nineteen twenty.", "five")
