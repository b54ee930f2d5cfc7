"""
Unit tests for the offline migration of lexical data files.
"""
import json
import tempfile
import unittest
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lexspan.records.migrate import (
    MIGRATION_LEGACY,
    MIGRATION_RENORMALIZE,
    find_lexical_files,
    main,
    migrate_tree,
)
from lexspan.records.normalize import normalize_record

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)
NOW_MS = 1735689600000

LEGACY_DOC = {
    "logTitle": "Cambridge 18 Test 1",
    "sourceId": "c18-t1-p1",
    "totalItems": 1,
    "lexicalItems": [
        {
            "id": 1,
            "targetLexeme": "take into account",
            "sourceContext": "You must take costs into account.",
            "phase1Inference": {"contextualGuessVI": "xem xét"},
            "phase2Annotation": {
                "phonetic": "",
                "sentiment": "neutral",
                "definitionEN": "consider",
                "translationVI": "cân nhắc",
                "relatedCollocates": "take note, take care",
                "wordForms": {"noun": ["account"]},
            },
            "phase3Production": {"taskType": "sentence", "content": ""},
        }
    ],
}


def write_json(path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


class TestMigrateTree(unittest.TestCase):
    """Test cases for directory migration."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

        self.legacy = self.root / "cambridge" / "legacy.json"
        write_json(self.legacy, LEGACY_DOC)

        canonical_item = normalize_record(dict(LEGACY_DOC["lexicalItems"][0], id="1700000000000-0-0-00000061"))
        self.canonical = self.root / "canonical.json"
        write_json(self.canonical, {
            "logTitle": "Canonical",
            "sourceId": "c",
            "totalItems": 1,
            "lexicalItems": [canonical_item.to_dict()],
        })

        self.stale = self.root / "stale.json"
        stale_item = dict(canonical_item.to_dict())
        stale_item["phase2Annotation"] = dict(stale_item["phase2Annotation"], usageNotes="Informal.")
        write_json(self.stale, {"logTitle": "Stale", "sourceId": "s", "totalItems": 1, "lexicalItems": [stale_item]})

        self.other = self.root / "settings.json"
        write_json(self.other, {"theme": "dark"})

        self.bad = self.root / "broken" / "bad.json"
        self.bad.parent.mkdir()
        self.bad.write_text("{not json", encoding="utf-8")

        self.backup = self.root / "old.backup.1.json"
        self.backup.write_text("{not json either", encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def test_find_lexical_files_skips_backups(self):
        names = [p.name for p in find_lexical_files(self.root)]
        self.assertNotIn("old.backup.1.json", names)
        self.assertIn("legacy.json", names)

    def test_migrate_tree(self):
        report = migrate_tree(self.root, now=NOW)

        self.assertEqual(sorted(p.name for p in report.migrated), ["legacy.json", "stale.json"])
        self.assertEqual(sorted(p.name for p in report.skipped), ["canonical.json", "settings.json"])
        self.assertEqual([p.name for p, _ in report.failed], ["bad.json"])

    def test_legacy_file_rewritten_with_backup(self):
        original = self.legacy.read_text(encoding="utf-8")
        migrate_tree(self.root, now=NOW)

        backup = self.legacy.with_name(f"legacy.json.backup.{NOW_MS}")
        self.assertTrue(backup.exists())
        self.assertEqual(backup.read_text(encoding="utf-8"), original)

        data = read_json(self.legacy)
        info = data["migrationInfo"]
        self.assertEqual(info["migrationType"], MIGRATION_LEGACY)
        self.assertEqual(info["version"], "2.0")
        self.assertEqual(info["originalCount"], 1)
        self.assertEqual(info["migratedCount"], 1)
        self.assertEqual(info["migratedAt"], "2025-01-01T00:00:00Z")

        item = data["lexicalItems"][0]
        self.assertIsInstance(item["id"], str)
        self.assertTrue(item["id"].startswith(f"{NOW_MS}-"))
        self.assertEqual(
            item["phase2Annotation"]["relatedCollocates"],
            [{"form": "take note", "meaning": ""}, {"form": "take care", "meaning": ""}],
        )
        self.assertEqual(item["phase2Annotation"]["wordForms"]["noun"], [{"form": "account", "meaning": ""}])
        self.assertEqual(data["logTitle"], "Cambridge 18 Test 1")

    def test_renormalize_keeps_ids(self):
        migrate_tree(self.root, now=NOW)
        data = read_json(self.stale)
        self.assertEqual(data["migrationInfo"]["migrationType"], MIGRATION_RENORMALIZE)
        item = data["lexicalItems"][0]
        self.assertEqual(item["id"], "1700000000000-0-0-00000061")
        self.assertEqual(item["phase2Annotation"]["usageNotes"], [{"noteEN": "Informal.", "noteVI": ""}])

    def test_second_run_changes_nothing(self):
        """Test that migrating an already migrated tree is a no-op."""
        migrate_tree(self.root, now=NOW)
        after_first = self.legacy.read_text(encoding="utf-8")

        report = migrate_tree(self.root, now=NOW)
        self.assertEqual(report.migrated, [])
        self.assertEqual(self.legacy.read_text(encoding="utf-8"), after_first)

    def test_dry_run_writes_nothing(self):
        original = self.legacy.read_text(encoding="utf-8")
        report = migrate_tree(self.root, now=NOW, dry_run=True)

        self.assertIn(self.legacy, report.migrated)
        self.assertEqual(self.legacy.read_text(encoding="utf-8"), original)
        self.assertEqual(list(self.legacy.parent.glob("*.backup.*")), [])

    def test_missing_root_is_fatal(self):
        with self.assertRaises(FileNotFoundError):
            migrate_tree(self.root / "missing", now=NOW)

    def test_cli(self):
        self.assertEqual(main(["--root", str(self.root / "missing")]), 1)
        # bad.json fails, so the run reports an error exit code
        self.assertEqual(main(["--root", str(self.root), "--dry-run"]), 1)
        self.bad.unlink()
        self.assertEqual(main(["--root", str(self.root), "--dry-run"]), 0)


if __name__ == "__main__":
    unittest.main()
