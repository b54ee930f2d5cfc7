"""
Annotation record schema.

Dataclasses mirror the persisted JSON (camelCase keys on disk, snake_case
attributes in Python). ``from_dict`` here is purely structural: turning
historical field shapes into the canonical one is the job of
``lexspan.records.normalize``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

RECORD_TYPE_WORD = "word"
RECORD_TYPE_COLLOCATION = "collocation"

WORD_FORM_CATEGORIES = ("noun", "verb", "adjective", "adverb")

_RECORD_KEYS = {
    "id", "targetLexeme", "sourceContext", "isNonContiguous", "componentRanges",
    "selectedWordPositions", "type", "displayText", "originalContext",
    "phase1Inference", "phase2Annotation", "phase3Production",
}


@dataclass(frozen=True)
class ComponentRange:
    """One contiguous run of a record, absolute offsets in the flattened document."""
    start: int
    end: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "text": self.text}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ComponentRange:
        return cls(start=int(d["start"]), end=int(d["end"]), text=str(d.get("text", "")))


@dataclass(frozen=True)
class WordPosition:
    position: int
    paragraph_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {"position": self.position, "paragraphIndex": self.paragraph_index}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> WordPosition:
        return cls(position=int(d.get("position", 0)), paragraph_index=int(d.get("paragraphIndex", 0)))


@dataclass
class InferenceHint:
    contextual_guess_vi: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"contextualGuessVI": self.contextual_guess_vi}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> InferenceHint:
        d = d or {}
        return cls(contextual_guess_vi=str(d.get("contextualGuessVI") or ""))


@dataclass
class LinguisticAnnotation:
    """Phase-2 bundle. Multi-valued fields hold canonical lists of dicts."""
    definition_en: str = ""
    translation_vi: str = ""
    phonetic: str = ""
    sentiment: str = ""
    register: str = ""
    related_collocates: List[Dict[str, str]] = field(default_factory=list)
    contrasting_collocates: List[Dict[str, str]] = field(default_factory=list)
    usage_notes: Optional[List[Dict[str, str]]] = None
    connotation: Optional[List[Dict[str, str]]] = None
    word_forms: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {c: [] for c in WORD_FORM_CATEGORIES}
    )
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "phonetic": self.phonetic,
            "sentiment": self.sentiment,
            "definitionEN": self.definition_en,
            "translationVI": self.translation_vi,
            "relatedCollocates": self.related_collocates,
            "wordForms": self.word_forms,
            "register": self.register,
            "connotation": self.connotation,
            "usageNotes": self.usage_notes,
            "contrastingCollocates": self.contrasting_collocates,
        }
        for key, value in self.extra.items():
            d.setdefault(key, value)
        return d


@dataclass
class ProductionExample:
    task_type: str = ""
    content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"taskType": self.task_type, "content": self.content}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> ProductionExample:
        d = d or {}
        return cls(task_type=str(d.get("taskType") or ""), content=str(d.get("content") or ""))


@dataclass
class AnnotationRecord:
    """The persisted unit for both auto-matched and user-highlighted items."""
    id: str
    target_lexeme: str
    source_context: str
    is_non_contiguous: bool = False
    component_ranges: List[ComponentRange] = field(default_factory=list)
    selected_word_positions: List[WordPosition] = field(default_factory=list)
    record_type: Optional[str] = None
    display_text: Optional[str] = None
    original_context: Optional[str] = None
    phase1: InferenceHint = field(default_factory=InferenceHint)
    phase2: LinguisticAnnotation = field(default_factory=LinguisticAnnotation)
    phase3: ProductionExample = field(default_factory=ProductionExample)
    # Unknown top-level keys, carried through untouched
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_positions(self) -> bool:
        return bool(self.component_ranges)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "targetLexeme": self.target_lexeme,
            "sourceContext": self.source_context,
            "isNonContiguous": self.is_non_contiguous,
        }
        if self.component_ranges:
            d["componentRanges"] = [r.to_dict() for r in self.component_ranges]
            d["selectedWordPositions"] = [p.to_dict() for p in self.selected_word_positions]
        if self.record_type is not None:
            d["type"] = self.record_type
        if self.display_text is not None:
            d["displayText"] = self.display_text
        if self.original_context is not None:
            d["originalContext"] = self.original_context
        d["phase1Inference"] = self.phase1.to_dict()
        d["phase2Annotation"] = self.phase2.to_dict()
        d["phase3Production"] = self.phase3.to_dict()
        for key, value in self.extra.items():
            d.setdefault(key, value)
        return d


def split_extra(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if k not in _RECORD_KEYS}


@dataclass
class LexicalDocument:
    """
    File-level container used by exports, imports and migration.

    ``lexical_items`` stays in dictionary form: items can be in any
    historical shape until they go through the normalizer.
    """
    log_title: str = ""
    source_id: str = ""
    lexical_items: List[Dict[str, Any]] = field(default_factory=list)
    migration_info: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_items(self) -> int:
        return len(self.lexical_items)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "logTitle": self.log_title,
            "sourceId": self.source_id,
            "totalItems": self.total_items,
            "lexicalItems": self.lexical_items,
        }
        if self.migration_info is not None:
            d["migrationInfo"] = self.migration_info
        for key, value in self.extra.items():
            d.setdefault(key, value)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> LexicalDocument:
        """Raises ValueError if ``d`` is not a persisted lexical document."""
        if not isinstance(d, dict) or not isinstance(d.get("lexicalItems"), list):
            raise ValueError("Expected an object with a 'lexicalItems' array")
        known = {"logTitle", "sourceId", "totalItems", "lexicalItems", "migrationInfo"}
        return cls(
            log_title=str(d.get("logTitle", "")),
            source_id=str(d.get("sourceId", "")),
            lexical_items=list(d["lexicalItems"]),
            migration_info=d.get("migrationInfo"),
            extra={k: v for k, v in d.items() if k not in known},
        )
