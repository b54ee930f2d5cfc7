from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, Iterator, List, MutableMapping, Optional, Protocol, Tuple

from lexspan.config import CONFIG, EngineConfig
from lexspan.overlap import spans_overlap
from lexspan.records.identity import record_timestamp
from lexspan.records.normalize import normalize_record
from lexspan.records.schema import AnnotationRecord

LOG = logging.getLogger(__name__)

DEFAULT_STORE_KEY = "position-based-highlights"
_MS_PER_DAY = 24 * 60 * 60 * 1000


class RecordError(ValueError):
    """Raised when a record would break a store invariant."""


class RecordRepository(Protocol):
    def load(self) -> List[Dict[str, Any]]: ...

    def save_all(self, items: List[Dict[str, Any]]) -> None: ...

    def clear(self) -> None: ...


class InMemoryRepository:
    def __init__(self, items: Optional[List[Dict[str, Any]]] = None):
        self.items: List[Dict[str, Any]] = list(items or [])

    def load(self) -> List[Dict[str, Any]]:
        return list(self.items)

    def save_all(self, items: List[Dict[str, Any]]) -> None:
        self.items = list(items)

    def clear(self) -> None:
        self.items = []


class KeyValueRepository:
    """Records as one JSON string under ``key`` in any string mapping."""

    def __init__(self, backend: MutableMapping[str, str], key: str = DEFAULT_STORE_KEY):
        self.backend = backend
        self.key = key

    def load(self) -> List[Dict[str, Any]]:
        raw = self.backend.get(self.key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOG.error("Stored records under %r are not valid JSON: %s", self.key, exc)
            return []
        if not isinstance(data, list):
            LOG.error("Stored records under %r are not a list", self.key)
            return []
        return data

    def save_all(self, items: List[Dict[str, Any]]) -> None:
        self.backend[self.key] = json.dumps(items, ensure_ascii=False)

    def clear(self) -> None:
        self.backend.pop(self.key, None)


def validate_record(record: AnnotationRecord) -> None:
    """
    Raises:
        RecordError: empty ranges, an empty range, or ranges that overlap
    """
    if not record.component_ranges:
        raise RecordError(f"Record {record.id} has no component ranges")
    ordered = sorted(record.component_ranges, key=lambda r: r.start)
    for r in ordered:
        if r.start >= r.end:
            raise RecordError(f"Record {record.id} has an empty range [{r.start}, {r.end})")
    for prev, cur in zip(ordered, ordered[1:]):
        if spans_overlap(prev.start, prev.end, cur.start, cur.end):
            raise RecordError(f"Record {record.id} has overlapping ranges")


class RecordStore:
    """
    Flat collection of highlight records backed by a repository.

    The collection is an immutable tuple swapped wholesale on every
    mutation, then persisted in full.
    """

    def __init__(
        self,
        repository: Optional[RecordRepository] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.repository = repository if repository is not None else InMemoryRepository()
        self.config = config or CONFIG
        self.clock = clock
        self._records: Tuple[AnnotationRecord, ...] = ()

    @property
    def records(self) -> Tuple[AnnotationRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[AnnotationRecord]:
        return iter(self._records)

    def get(self, record_id: str) -> Optional[AnnotationRecord]:
        return next((r for r in self._records if r.id == record_id), None)

    def load(self, document_text: Optional[str] = None) -> Tuple[AnnotationRecord, ...]:
        """
        Read, normalize and age-filter stored records.

        Records older than ``retention_days`` (by the timestamp in their id)
        are left out without rewriting the repository. Items that had no
        string id are given one, and the repository is saved once so the
        new ids stick across loads.
        """
        now_ms = int(self.clock() * 1000)
        cutoff = now_ms - self.config.retention_days * _MS_PER_DAY

        stored = self.repository.load()
        persisted: List[Any] = list(stored)
        assigned = 0
        loaded: List[AnnotationRecord] = []
        seen = set()
        evicted = 0
        for index, raw in enumerate(stored):
            try:
                record = normalize_record(raw, item_index=index, timestamp_ms=now_ms, document_text=document_text)
            except ValueError as exc:
                LOG.warning("Skipping stored record #%d: %s", index, exc)
                continue
            if record.id != raw.get("id"):
                persisted[index] = record.to_dict()
                assigned += 1
            if record.id in seen:
                continue
            ts = record_timestamp(record.id)
            if ts is not None and ts <= cutoff:
                evicted += 1
                continue
            seen.add(record.id)
            loaded.append(record)

        if evicted:
            LOG.info("Dropped %d records older than %d days", evicted, self.config.retention_days)
        if assigned:
            LOG.info("Assigned ids to %d stored records", assigned)
            self.repository.save_all(persisted)
        self._records = tuple(loaded)
        return self._records

    def add(self, record: AnnotationRecord) -> AnnotationRecord:
        validate_record(record)
        if self.get(record.id) is not None:
            raise RecordError(f"Duplicate record id {record.id}")
        self._commit(self._records + (record,))
        return record

    def remove(self, record_id: str) -> bool:
        kept = tuple(r for r in self._records if r.id != record_id)
        if len(kept) == len(self._records):
            return False
        self._commit(kept)
        return True

    def clear(self) -> None:
        self._records = ()
        self.repository.clear()

    def replace_all(self, records: Iterable[AnnotationRecord]) -> None:
        records = tuple(records)
        ids = set()
        for r in records:
            validate_record(r)
            if r.id in ids:
                raise RecordError(f"Duplicate record id {r.id}")
            ids.add(r.id)
        self._commit(records)

    def overlapping(self, start: int, end: int) -> List[AnnotationRecord]:
        """Records with any component range intersecting ``[start, end)``."""
        return [
            r for r in self._records
            if any(spans_overlap(start, end, c.start, c.end) for c in r.component_ranges)
        ]

    def _commit(self, records: Tuple[AnnotationRecord, ...]) -> None:
        self.repository.save_all([r.to_dict() for r in records])
        self._records = records
