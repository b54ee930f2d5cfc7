"""
Offline migration of persisted lexical documents to the current schema.

Usage:
    python -m lexspan.records.migrate --root data/
    python -m lexspan.records.migrate --root data/ --dry-run

Every ``*.json`` file under the root that holds a ``lexicalItems`` array is
normalized. Files with numeric (legacy) item ids get fresh ids; files that
are already canonical are left alone. A ``{file}.backup.{timestamp}`` copy
is written before a file is overwritten.
"""
from __future__ import annotations

import argparse
import json
import logging
import shutil
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from lexspan.config import CONFIG
from lexspan.records.normalize import is_legacy_item, normalize_record
from lexspan.records.schema import LexicalDocument

LOG = logging.getLogger(__name__)

MIGRATION_LEGACY = "legacy-to-v2"
MIGRATION_RENORMALIZE = "renormalize"


@dataclass
class MigrationReport:
    migrated: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    failed: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.migrated) + len(self.skipped) + len(self.failed)


def find_lexical_files(root: Path) -> List[Path]:
    """All ``*.json`` files under ``root``, backups excluded, in stable order."""
    return sorted(p for p in Path(root).rglob("*.json") if p.is_file() and ".backup." not in p.name)


def backup_file(path: Path, timestamp_ms: int) -> Path:
    backup = path.with_name(f"{path.name}.backup.{timestamp_ms}")
    shutil.copyfile(path, backup)
    LOG.info("Backup created: %s", backup)
    return backup


def migrate_document(
    document: LexicalDocument,
    file_index: int,
    now: datetime,
) -> Optional[LexicalDocument]:
    """
    Migrated copy of ``document``, or None when it is already canonical.

    Raises:
        ValueError: if an item is not an object
    """
    items = document.lexical_items
    legacy = any(isinstance(item, dict) and is_legacy_item(item) for item in items)
    timestamp_ms = int(now.timestamp() * 1000)

    migrated: List[Dict[str, Any]] = [
        normalize_record(item, batch_index=file_index, item_index=i, timestamp_ms=timestamp_ms).to_dict()
        for i, item in enumerate(items)
    ]
    if not legacy and migrated == items:
        return None

    return LexicalDocument(
        log_title=document.log_title,
        source_id=document.source_id,
        lexical_items=migrated,
        migration_info={
            "migratedAt": now.isoformat().replace("+00:00", "Z"),
            "version": CONFIG.schema_version,
            "originalCount": len(items),
            "migratedCount": len(migrated),
            "migrationType": MIGRATION_LEGACY if legacy else MIGRATION_RENORMALIZE,
        },
        extra=document.extra,
    )


def migrate_file(path: Path, file_index: int, now: datetime, dry_run: bool = False) -> bool:
    """
    Migrate one file in place. Returns False when nothing needed changing
    or the file is not a lexical document.

    Raises:
        OSError, ValueError: unreadable file, invalid JSON or a non-object item
    """
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict) or not isinstance(payload.get("lexicalItems"), list):
        LOG.info("Skipping %s: no lexicalItems array", path)
        return False
    document = LexicalDocument.from_dict(payload)

    migrated = migrate_document(document, file_index, now)
    if migrated is None:
        return False
    if dry_run:
        LOG.info("[dry-run] Would migrate %d items in %s", migrated.total_items, path)
        return True

    backup_file(path, int(now.timestamp() * 1000))
    with path.open("w", encoding="utf-8") as handle:
        json.dump(migrated.to_dict(), handle, ensure_ascii=False, indent=2)
        handle.write("\n")
    LOG.info("Migrated %d items in %s (%s)", migrated.total_items, path, migrated.migration_info["migrationType"])
    return True


def migrate_tree(root: Path, now: Optional[datetime] = None, dry_run: bool = False) -> MigrationReport:
    """
    Migrate every lexical document under ``root``.

    Per-file errors are logged and recorded in the report.

    Raises:
        FileNotFoundError: if ``root`` is not an existing directory
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Data directory not found: {root}")
    now = now or datetime.now(timezone.utc)

    report = MigrationReport()
    files = find_lexical_files(root)
    LOG.info("Found %d JSON files under %s", len(files), root)

    for index, path in enumerate(files):
        try:
            changed = migrate_file(path, index, now, dry_run=dry_run)
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError
            LOG.error("Error migrating %s: %s", path, exc)
            report.failed.append((path, str(exc)))
            continue
        (report.migrated if changed else report.skipped).append(path)

    LOG.info(
        "Migration finished: %d migrated, %d unchanged, %d failed",
        len(report.migrated), len(report.skipped), len(report.failed),
    )
    return report


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Migrate lexical data files to the current record schema.")
    parser.add_argument("--root", type=str, default="data", help="Directory scanned recursively for *.json files")
    parser.add_argument("--dry-run", action="store_true", help="Report what would change without writing")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")

    try:
        report = migrate_tree(Path(args.root), dry_run=args.dry_run)
    except FileNotFoundError as exc:
        LOG.error("%s", exc)
        return 1
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
