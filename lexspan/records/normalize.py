"""
Normalization of stored annotation records into the canonical schema.

Multi-valued annotation fields went through several historical shapes
(bare strings, comma-joined strings, string arrays, object arrays, and
object arrays wrapped twice by an earlier migration). Each value is
classified into a ``Shape`` by probing its structure, then mapped to the
canonical list-of-objects form. Canonical input is returned as is, so
running the normalizer twice changes nothing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from lexspan.context import extract_source_context
from lexspan.records.identity import generate_record_id
from lexspan.records.schema import (
    WORD_FORM_CATEGORIES,
    AnnotationRecord,
    ComponentRange,
    InferenceHint,
    LinguisticAnnotation,
    ProductionExample,
    WordPosition,
    split_extra,
)

LOG = logging.getLogger(__name__)


class Shape(str, Enum):
    ABSENT = "absent"
    SCALAR = "scalar"
    STRING_LIST = "string_list"
    CANONICAL_LIST = "canonical_list"
    NESTED_LIST = "nested_list"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FieldSpec:
    """How one multi-valued field looks once canonical."""
    name: str
    keys: Tuple[str, str]  # (primary, secondary) keys of a canonical entry
    probe_keys: Tuple[str, ...]  # any of these on element 0 marks canonical shape
    empty: Callable[[], Optional[list]]
    comma_split: bool = False

    def wrap(self, value: str) -> Dict[str, str]:
        primary, secondary = self.keys
        return {primary: value, secondary: ""}


COLLOCATES = FieldSpec("relatedCollocates", ("form", "meaning"), ("form",), list, comma_split=True)
CONTRASTING = FieldSpec("contrastingCollocates", ("form", "meaning"), ("form",), list, comma_split=True)
USAGE_NOTES = FieldSpec("usageNotes", ("noteEN", "noteVI"), ("noteEN",), lambda: None)
CONNOTATION = FieldSpec(
    "connotation", ("connotationEN", "connotationVI"), ("connotationEN", "noteEN"), lambda: None
)

FIELD_SPECS: Dict[str, FieldSpec] = {s.name: s for s in (COLLOCATES, CONTRASTING, USAGE_NOTES, CONNOTATION)}

_PHASE2_KEYS = {
    "phonetic", "sentiment", "definitionEN", "translationVI", "register", "wordForms",
    *FIELD_SPECS,
}


def detect_shape(value: Any, spec: FieldSpec) -> Shape:
    """Classify ``value`` by structure (element 0 decides for arrays)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return Shape.ABSENT
    if isinstance(value, str):
        return Shape.SCALAR
    if not isinstance(value, list):
        return Shape.UNKNOWN
    if not value:
        return Shape.CANONICAL_LIST

    first = value[0]
    if isinstance(first, str):
        return Shape.STRING_LIST
    if isinstance(first, dict):
        if any(isinstance(first.get(k), dict) for k in spec.probe_keys):
            return Shape.NESTED_LIST
        if any(k in first for k in spec.probe_keys):
            return Shape.CANONICAL_LIST
    return Shape.UNKNOWN


def normalize_field(name: str, value: Any) -> Optional[list]:
    """Canonical value of one multi-valued phase-2 field. Never raises."""
    spec = FIELD_SPECS[name]
    shape = detect_shape(value, spec)

    if shape == Shape.CANONICAL_LIST:
        return value
    if shape == Shape.ABSENT:
        return spec.empty()
    if shape == Shape.SCALAR:
        parts = value.split(",") if spec.comma_split else [value]
        entries = [spec.wrap(p.strip()) for p in parts if p.strip()]
        return entries or spec.empty()
    if shape == Shape.STRING_LIST:
        return _wrap_strings(spec, value)
    if shape == Shape.NESTED_LIST:
        return _unwrap_nested(spec, value)

    LOG.warning("Unrecognized shape for %s, resetting to empty: %r", name, value)
    return spec.empty()


def _wrap_strings(spec: FieldSpec, values: List[Any]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for v in values:
        if isinstance(v, str):
            if v.strip():
                out.append(spec.wrap(v.strip()))
        elif isinstance(v, dict) and any(k in v for k in spec.probe_keys):
            out.append(v)
        else:
            LOG.warning("Dropping unrecognized %s entry: %r", spec.name, v)
    return out


def _unwrap_nested(spec: FieldSpec, values: List[Any]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for v in values:
        entry = v
        # Peel wrappers until the entry's own keys hold plain values
        while isinstance(entry, dict):
            inner = next((entry[k] for k in spec.probe_keys if isinstance(entry.get(k), dict)), None)
            if inner is None:
                break
            entry = inner
        if isinstance(entry, dict):
            out.append(entry)
        elif isinstance(entry, str) and entry.strip():
            out.append(spec.wrap(entry.strip()))
        else:
            LOG.warning("Dropping unrecognized %s entry: %r", spec.name, v)
    return out


def normalize_word_forms(value: Any) -> Dict[str, List[Dict[str, str]]]:
    """Four fixed categories, each a list of ``{form, meaning}``."""
    if value is not None and not isinstance(value, dict):
        LOG.warning("Unrecognized wordForms shape, resetting: %r", value)
        value = None
    value = value or {}

    forms: Dict[str, List[Dict[str, str]]] = {}
    for category in WORD_FORM_CATEGORIES:
        entries = value.get(category) or []
        if not isinstance(entries, list):
            entries = [entries]
        normalized: List[Dict[str, str]] = []
        for entry in entries:
            if isinstance(entry, str):
                normalized.append({"form": entry, "meaning": ""})
            elif isinstance(entry, dict) and "form" in entry:
                normalized.append({"form": str(entry.get("form") or ""), "meaning": str(entry.get("meaning") or "")})
            else:
                LOG.warning("Dropping unrecognized wordForms.%s entry: %r", category, entry)
        forms[category] = normalized
    return forms


def normalize_annotation(raw: Any) -> LinguisticAnnotation:
    if raw is not None and not isinstance(raw, dict):
        LOG.warning("Unrecognized phase2Annotation shape, resetting: %r", raw)
    raw = raw if isinstance(raw, dict) else {}

    return LinguisticAnnotation(
        definition_en=_text(raw.get("definitionEN")),
        translation_vi=_text(raw.get("translationVI")),
        phonetic=_text(raw.get("phonetic")),
        sentiment=_text(raw.get("sentiment")),
        register=_text(raw.get("register")),
        related_collocates=normalize_field(COLLOCATES.name, raw.get(COLLOCATES.name)),
        contrasting_collocates=normalize_field(CONTRASTING.name, raw.get(CONTRASTING.name)),
        usage_notes=normalize_field(USAGE_NOTES.name, raw.get(USAGE_NOTES.name)),
        connotation=normalize_field(CONNOTATION.name, raw.get(CONNOTATION.name)),
        word_forms=normalize_word_forms(raw.get("wordForms")),
        extra={k: v for k, v in raw.items() if k not in _PHASE2_KEYS},
    )


def is_legacy_item(raw: Dict[str, Any]) -> bool:
    """Oldest on-disk items carry a numeric id."""
    rid = raw.get("id")
    return isinstance(rid, int) and not isinstance(rid, bool)


def normalize_record(
    raw: Dict[str, Any],
    batch_index: int = 0,
    item_index: int = 0,
    timestamp_ms: Optional[int] = None,
    document_text: Optional[str] = None,
) -> AnnotationRecord:
    """
    Canonical record from a stored item of any historical shape.

    String ids are kept; legacy numeric or missing ids get a fresh one.
    Pre-v2 highlights without a ``sourceContext`` get it re-extracted from
    ``document_text`` when one is supplied.

    Raises:
        ValueError: if ``raw`` is not an object.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Expected record object, got {type(raw).__name__}")

    target = _text(raw.get("targetLexeme") or raw.get("displayText") or raw.get("text"))
    context = _text(raw.get("sourceContext"))
    ranges = _component_ranges(raw.get("componentRanges"))

    if not context and ranges and document_text:
        context = extract_source_context(document_text, ranges[0].start, ranges[0].end)

    rid = raw.get("id")
    if not isinstance(rid, str) or not rid:
        rid = generate_record_id(target, context, batch_index, item_index, timestamp_ms)

    record_type = raw.get("type")
    non_contiguous = raw.get("isNonContiguous")
    if not isinstance(non_contiguous, bool):
        non_contiguous = record_type == "collocation" or len(ranges) > 1

    return AnnotationRecord(
        id=rid,
        target_lexeme=target,
        source_context=context,
        is_non_contiguous=non_contiguous,
        component_ranges=ranges,
        selected_word_positions=_word_positions(raw.get("selectedWordPositions")),
        record_type=record_type if isinstance(record_type, str) else None,
        display_text=_optional_text(raw.get("displayText")),
        original_context=_optional_text(raw.get("originalContext")),
        phase1=InferenceHint.from_dict(_dict_or_none(raw.get("phase1Inference"))),
        phase2=normalize_annotation(raw.get("phase2Annotation")),
        phase3=ProductionExample.from_dict(_dict_or_none(raw.get("phase3Production"))),
        extra=split_extra(raw),
    )


# ----------------------------
# Helpers
# ----------------------------

def _text(value: Any) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else _text(value)


def _dict_or_none(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _component_ranges(value: Any) -> List[ComponentRange]:
    ranges: List[ComponentRange] = []
    if not isinstance(value, list):
        return ranges
    for r in value:
        try:
            ranges.append(ComponentRange.from_dict(r))
        except (KeyError, TypeError, ValueError):
            LOG.warning("Dropping malformed component range: %r", r)
    return sorted(ranges, key=lambda r: (r.start, r.end))


def _word_positions(value: Any) -> List[WordPosition]:
    positions: List[WordPosition] = []
    if not isinstance(value, list):
        return positions
    for p in value:
        try:
            positions.append(WordPosition.from_dict(p))
        except (AttributeError, TypeError, ValueError):
            LOG.warning("Dropping malformed word position: %r", p)
    return positions
