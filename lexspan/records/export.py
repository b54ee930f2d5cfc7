from __future__ import annotations

import csv
import io
import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from lexspan.config import CONFIG
from lexspan.records.schema import AnnotationRecord, LexicalDocument

LOG = logging.getLogger(__name__)

MASTER_FILE_NAME = "vocabulary-master.json"
MERGED_LOG_TITLE = "Merged Self-Learning Vocabulary Data"
MERGED_SOURCE_ID = "Self-learning (Merged from Batches)"

_RE_BATCH_FILE = re.compile(r"^batch-(\d+)-of-(\d+)\.json$")


def _utc_iso(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.isoformat().replace("+00:00", "Z")


# ----------------------------
# Document I/O
# ----------------------------

def read_document(path: Path) -> LexicalDocument:
    """Raises OSError / json.JSONDecodeError / ValueError on unreadable input."""
    with Path(path).open("r", encoding="utf-8") as handle:
        return LexicalDocument.from_dict(json.load(handle))


def write_json(path: Path, payload: Any) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2)
        handle.write("\n")


# ----------------------------
# Single-shot exports
# ----------------------------

def export_text(records: Iterable[AnnotationRecord]) -> str:
    """One target lexeme per line."""
    return "\n".join(r.target_lexeme for r in records)


def copy_text(records: Iterable[AnnotationRecord]) -> str:
    """Comma-joined target lexemes, for the clipboard."""
    return ", ".join(r.target_lexeme for r in records)


def export_csv(records: Iterable[AnnotationRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    buffer.write("targetLexeme,sourceContext\n")
    for r in records:
        writer.writerow([r.target_lexeme, r.source_context])
    return buffer.getvalue()


def export_json(records: Iterable[AnnotationRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2)


def build_document(
    records: Iterable[AnnotationRecord],
    log_title: str = "",
    source_id: str = "",
) -> LexicalDocument:
    return LexicalDocument(
        log_title=log_title,
        source_id=source_id,
        lexical_items=[r.to_dict() for r in records],
    )


# ----------------------------
# Batches
# ----------------------------

def export_batches(
    records: Sequence[AnnotationRecord],
    out_dir: Path,
    batch_size: Optional[int] = None,
    write_master: bool = True,
    log_title: str = "Self-Learning Vocabulary",
    source_id: str = "Self-learning",
    now: Optional[datetime] = None,
) -> List[Path]:
    """
    Split records into ``batch-{n}-of-{total}.json`` files under ``out_dir``.

    Returns the written paths (master file last, when written).
    """
    batch_size = batch_size or CONFIG.batch_size
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    out_dir = Path(out_dir)
    exported_at = _utc_iso(now)
    total = math.ceil(len(records) / batch_size)
    written: List[Path] = []

    for n in range(1, total + 1):
        chunk = records[(n - 1) * batch_size:n * batch_size]
        payload = {
            "batchInfo": {
                "batchNumber": n,
                "totalBatches": total,
                "itemCount": len(chunk),
                "exportedAt": exported_at,
            },
            "items": [r.to_dict() for r in chunk],
        }
        path = out_dir / f"batch-{n}-of-{total}.json"
        write_json(path, payload)
        written.append(path)

    if write_master and records:
        master = build_document(records, log_title=log_title, source_id=source_id)
        path = out_dir / MASTER_FILE_NAME
        write_json(path, master.to_dict())
        written.append(path)

    LOG.info("Exported %d records in %d batches to %s", len(records), total, out_dir)
    return written


def _batch_sort_key(path: Path):
    m = _RE_BATCH_FILE.match(path.name)
    return (0, int(m.group(1)), path.name) if m else (1, 0, path.name)


def find_batch_files(input_dir: Path) -> List[Path]:
    files = [p for p in Path(input_dir).iterdir() if p.is_file() and p.name.startswith("batch-") and p.suffix == ".json"]
    return sorted(files, key=_batch_sort_key)


def extract_batch_items(payload: Any) -> Optional[List[Dict[str, Any]]]:
    """Items of a batch payload in any known layout, or None if unrecognized."""
    if isinstance(payload, dict) and isinstance(payload.get("items"), list):
        return payload["items"]
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("lexicalItems"), list):
        return payload["lexicalItems"]
    return None


@dataclass
class MergeResult:
    output_file: Path
    input_files: List[Path] = field(default_factory=list)
    processed: int = 0
    total_items: int = 0
    unique_items: int = 0

    @property
    def duplicates_removed(self) -> int:
        return self.total_items - self.unique_items


def merge_batches(input_dir: Path, output_file: Path, now: Optional[datetime] = None) -> MergeResult:
    """
    Merge batch files back into one persisted document plus a text report.

    Raises:
        FileNotFoundError: if ``input_dir`` does not exist
    """
    input_dir = Path(input_dir)
    output_file = Path(output_file)
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory does not exist: {input_dir}")

    result = MergeResult(output_file=output_file, input_files=find_batch_files(input_dir))
    if not result.input_files:
        LOG.info("No batch files found in %s", input_dir)
        return result

    all_items: List[Dict[str, Any]] = []
    for path in result.input_files:
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            LOG.error("Error processing %s: %s", path.name, exc)
            continue
        items = extract_batch_items(payload)
        if items is None:
            LOG.warning("Unknown format in %s, skipping", path.name)
            continue
        LOG.info("%s: %d items", path.name, len(items))
        all_items.extend(items)
        result.processed += 1

    unique: List[Dict[str, Any]] = []
    seen = set()
    for item in all_items:
        item_id = item.get("id") if isinstance(item, dict) else None
        if item_id in seen:
            continue
        seen.add(item_id)
        unique.append(item)
    unique.sort(key=lambda item: str(item.get("id", "")) if isinstance(item, dict) else "")

    result.total_items = len(all_items)
    result.unique_items = len(unique)
    merged_at = _utc_iso(now)

    document = LexicalDocument(
        log_title=MERGED_LOG_TITLE,
        source_id=MERGED_SOURCE_ID,
        lexical_items=unique,
        extra={
            "mergeInfo": {
                "mergedAt": merged_at,
                "sourceDirectory": str(input_dir),
                "batchesProcessed": result.processed,
                "originalItemCount": result.total_items,
                "finalItemCount": result.unique_items,
                "duplicatesRemoved": result.duplicates_removed,
            }
        },
    )
    write_json(output_file, document.to_dict())
    report_path(output_file).write_text(render_merge_report(result, merged_at), encoding="utf-8")

    LOG.info(
        "Merged %d/%d batches: %d items, %d unique, %d duplicates removed",
        result.processed, len(result.input_files), result.total_items,
        result.unique_items, result.duplicates_removed,
    )
    return result


def report_path(output_file: Path) -> Path:
    output_file = Path(output_file)
    return output_file.with_name(f"{output_file.stem}-merge-report.txt")


def render_merge_report(result: MergeResult, merged_at: str) -> str:
    size_kb = result.output_file.stat().st_size / 1024 if result.output_file.exists() else 0.0
    lines = [
        "Vocabulary Merge Report",
        "=====================",
        "",
        f"Output File: {result.output_file}",
        f"Merge Date: {merged_at}",
        "",
        "Input Files:",
        *[f"  - {p.name}" for p in result.input_files],
        "",
        "Statistics:",
        f"- Total input files: {len(result.input_files)}",
        f"- Successfully processed: {result.processed}",
        f"- Total items found: {result.total_items}",
        f"- Unique items: {result.unique_items}",
        f"- Duplicates removed: {result.duplicates_removed}",
        f"- Output file size: {size_kb:.2f} KB",
        "",
    ]
    return "\n".join(lines)
