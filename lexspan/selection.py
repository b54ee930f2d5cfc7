"""
Manual selection tracking.

Word clicks build a pending set of tokens (plain click replaces it,
modifier click toggles membership). ``finalize`` turns the pending set into
one annotation record, grouping adjacent tokens into runs; ``cancel``
discards it. Drag selections become a single-run record directly.

States: IDLE -> PICKING (>= 1 pending token) -> IDLE (finalize/cancel).
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from rapidfuzz import fuzz

from lexspan.config import CONFIG, EngineConfig
from lexspan.context import extract_source_context
from lexspan.layout import UNRESOLVED, DocumentLayout
from lexspan.patterns import normalize_key
from lexspan.records.identity import generate_record_id
from lexspan.records.schema import (
    RECORD_TYPE_COLLOCATION,
    RECORD_TYPE_WORD,
    AnnotationRecord,
    ComponentRange,
    WordPosition,
)
from lexspan.records.store import RecordStore

LOG = logging.getLogger(__name__)

RUN_SEPARATOR = " ... "

_RE_ELLIPSIS_ONLY = re.compile(r"^[.…\s]*$")
_RE_WORD_CHAR = re.compile(r"\w")


class SelectionState(str, Enum):
    IDLE = "idle"
    PICKING = "picking"


@dataclass(frozen=True)
class WordClick:
    """
    A click on one rendered word.

    ``anchor`` is an opaque UI handle; it is only handed to the tracker's
    ``anchor_locator`` while the click is processed and never kept.
    """
    word: str
    position: int
    paragraph_index: int
    modifier: bool = False
    anchor: Any = None


@dataclass(frozen=True)
class DragSelection:
    """A dragged text selection, anchored by paragraph and paragraph-relative offset."""
    text: str
    paragraph_index: int
    relative_position: int


@dataclass(frozen=True)
class SelectedToken:
    word: str
    position: int
    paragraph_index: int
    start: int = -1
    end: int = -1

    @property
    def key(self) -> Tuple[int, int]:
        return (self.paragraph_index, self.position)

    @property
    def resolved(self) -> bool:
        return self.start >= 0 and self.end > self.start


@dataclass
class Run:
    """Maximal group of adjacent selected tokens."""
    tokens: List[SelectedToken] = field(default_factory=list)

    @property
    def start(self) -> int:
        return self.tokens[0].start

    @property
    def end(self) -> int:
        return self.tokens[-1].end

    @property
    def words(self) -> str:
        return " ".join(t.word for t in self.tokens)


@dataclass(frozen=True)
class _Accepted:
    text: str
    at: float


def group_runs(tokens: List[SelectedToken], adjacency_gap: int, text: Optional[str] = None) -> List[Run]:
    """
    Group resolved tokens (sorted by start) into runs. A token extends the
    current run when it is in the same paragraph and starts no more than
    ``adjacency_gap`` characters after the previous token ends. With the
    document ``text`` given, the gap must also hold no word characters
    (whitespace or punctuation only).
    """
    runs: List[Run] = []
    for token in tokens:
        if runs:
            prev = runs[-1].tokens[-1]
            if token.start < prev.end:
                # Same characters reached twice (e.g. via text-search fallback)
                continue
            gap = token.start - prev.end
            if (
                token.paragraph_index == prev.paragraph_index
                and gap <= adjacency_gap
                and (text is None or not _RE_WORD_CHAR.search(text[prev.end:token.start]))
            ):
                runs[-1].tokens.append(token)
                continue
        runs.append(Run(tokens=[token]))
    return runs


def display_text(runs: List[Run]) -> str:
    """Run words joined by spaces, runs joined by a single " ... " marker."""
    parts = [run.words for run in runs if not _RE_ELLIPSIS_ONLY.match(run.words)]
    return RUN_SEPARATOR.join(parts)


class SelectionTracker:
    def __init__(
        self,
        layout: DocumentLayout,
        store: Optional[RecordStore] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.time,
        anchor_locator: Optional[Callable[[Any], Optional[int]]] = None,
        batch_index: int = 0,
    ):
        self.layout = layout
        self.config = config or CONFIG
        self.store = store if store is not None else RecordStore(config=self.config, clock=clock)
        self.clock = clock
        self.anchor_locator = anchor_locator
        self.batch_index = batch_index
        self._pending: Tuple[SelectedToken, ...] = ()
        self._last_accepted: Optional[_Accepted] = None

    # ----------------------------
    # State
    # ----------------------------

    @property
    def state(self) -> SelectionState:
        return SelectionState.PICKING if self._pending else SelectionState.IDLE

    @property
    def is_picking(self) -> bool:
        return self.state == SelectionState.PICKING

    @property
    def pending(self) -> Tuple[SelectedToken, ...]:
        return self._pending

    @property
    def pending_words(self) -> List[str]:
        return [t.word for t in self._pending]

    # ----------------------------
    # Transitions
    # ----------------------------

    def click(self, event: WordClick) -> SelectionState:
        token = self._resolve_click(event)
        if not event.modifier:
            self._pending = (token,)
            return self.state

        if any(t.key == token.key for t in self._pending):
            pending = [t for t in self._pending if t.key != token.key]
        else:
            pending = list(self._pending) + [token]
        self._pending = tuple(sorted(pending, key=lambda t: t.key))
        return self.state

    def cancel(self) -> None:
        self._pending = ()

    def finalize(self) -> Optional[AnnotationRecord]:
        """
        Consume the pending set and store one record built from it.

        Returns None when nothing was pending, nothing could be located, or
        the same selection was just accepted (double fire).
        """
        tokens = self._pending
        self._pending = ()
        if not tokens:
            return None

        located = [t for t in (self._locate(t) for t in tokens) if t is not None]
        if not located:
            LOG.warning("Could not locate any of %s in the document", [t.word for t in tokens])
            return None

        located.sort(key=lambda t: (t.start, t.end))
        runs = group_runs(located, self.config.adjacency_gap, self.layout.text)
        target = display_text(runs)
        now = self.clock()
        if self._is_rapid_repeat(target, now):
            LOG.debug("Ignoring repeated selection %r", target)
            return None

        kept = [t for run in runs for t in run.tokens]
        text = self.layout.text
        ranges = [ComponentRange(start=r.start, end=r.end, text=text[r.start:r.end]) for r in runs]
        record_type = RECORD_TYPE_WORD if len(kept) == 1 else RECORD_TYPE_COLLOCATION
        context = extract_source_context(text, runs[0].start, runs[-1].end, self.config)

        record = AnnotationRecord(
            id=self._new_id(target, context, now),
            target_lexeme=target,
            source_context=context,
            is_non_contiguous=len(runs) > 1,
            component_ranges=ranges,
            selected_word_positions=[WordPosition(t.position, t.paragraph_index) for t in kept],
            record_type=record_type,
            display_text=target,
            original_context=target,
        )
        return self._accept(record, now)

    def drag(self, event: DragSelection) -> Optional[AnnotationRecord]:
        """
        Store a record for a dragged selection.

        Rejected (None) when the range touches any stored record's range,
        or when the same or a similar text was accepted within the dedup
        window. The pending click selection is cleared either way.
        """
        self._pending = ()
        selected = event.text.strip()
        if not selected:
            return None

        start = self._locate_drag(event, selected)
        if start < 0:
            LOG.warning("Could not locate dragged text %r", selected)
            return None
        end = start + len(selected)

        if self.store.overlapping(start, end):
            LOG.debug("Ignoring selection [%d, %d): overlaps an existing record", start, end)
            return None
        now = self.clock()
        if self._is_rapid_repeat(selected, now):
            LOG.debug("Ignoring repeated selection %r", selected)
            return None

        text = self.layout.text
        words = selected.split()
        record_type = RECORD_TYPE_COLLOCATION if len(words) > 1 else RECORD_TYPE_WORD
        context = extract_source_context(text, start, end, self.config)

        record = AnnotationRecord(
            id=self._new_id(selected, context, now),
            target_lexeme=selected,
            source_context=context,
            is_non_contiguous=False,
            component_ranges=[ComponentRange(start=start, end=end, text=text[start:end])],
            selected_word_positions=self._positions_in(start, end),
            record_type=record_type,
            display_text=selected,
            original_context=selected,
        )
        return self._accept(record, now)

    # ----------------------------
    # Helpers
    # ----------------------------

    def _resolve_click(self, event: WordClick) -> SelectedToken:
        if event.anchor is not None and self.anchor_locator is not None:
            start = self.anchor_locator(event.anchor)
            offsets = (start, start + len(event.word)) if start is not None and start >= 0 else UNRESOLVED
        else:
            offsets = self.layout.resolve_word(event.paragraph_index, event.position, event.word)
        return SelectedToken(
            word=event.word,
            position=event.position,
            paragraph_index=event.paragraph_index,
            start=offsets[0],
            end=offsets[1],
        )

    def _locate(self, token: SelectedToken) -> Optional[SelectedToken]:
        if token.resolved:
            return token
        start, end = self.layout.find_text(token.word, token.paragraph_index)
        if start < 0:
            LOG.warning("Dropping unresolvable token %r", token.word)
            return None
        return SelectedToken(token.word, token.position, token.paragraph_index, start, end)

    def _locate_drag(self, event: DragSelection, selected: str) -> int:
        """Absolute start of the trimmed selection; text search when the anchor disagrees."""
        leading = len(event.text) - len(event.text.lstrip())
        try:
            start = self.layout.absolute(event.paragraph_index, event.relative_position) + leading
        except IndexError:
            start = -1
        if start >= 0 and self.layout.text[start:start + len(selected)] == selected:
            return start
        start, _ = self.layout.find_text(selected, event.paragraph_index)
        return start

    def _positions_in(self, start: int, end: int) -> List[WordPosition]:
        positions: List[WordPosition] = []
        for p in range(len(self.layout.paragraphs)):
            base = self.layout.bases[p]
            for i, (ws, we) in enumerate(self.layout.words(p)):
                if base + ws < end and start < base + we:
                    positions.append(WordPosition(position=i, paragraph_index=p))
        return positions

    def _is_rapid_repeat(self, text: str, now: float) -> bool:
        last = self._last_accepted
        if last is None or now - last.at >= self.config.dedup_window_seconds:
            return False
        a, b = normalize_key(text), normalize_key(last.text)
        return a == b or fuzz.ratio(a, b) >= self.config.similarity_threshold

    def _new_id(self, target: str, context: str, now: float) -> str:
        return generate_record_id(target, context, self.batch_index, len(self.store), int(now * 1000))

    def _accept(self, record: AnnotationRecord, now: float) -> AnnotationRecord:
        self.store.add(record)
        self._last_accepted = _Accepted(text=record.target_lexeme, at=now)
        return record
