"""
Merge vocabulary batch files back into a master file.

Usage:
    python scripts/merge_vocabulary_batches.py ./batches ./merged-vocabulary.json

Finds batch-*.json files in the input directory, merges their items,
removes duplicates by id and writes a *-merge-report.txt next to the output.
"""
import argparse
import logging
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from lexspan.records.export import merge_batches, report_path  # noqa: E402

LOG = logging.getLogger("merge_vocabulary_batches")


def main() -> int:
    parser = argparse.ArgumentParser(description="Merge vocabulary batch files into one master file")
    parser.add_argument("input_dir", type=str, help="Directory holding batch-*.json files")
    parser.add_argument("output_file", type=str, help="Merged JSON file to write")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")

    try:
        result = merge_batches(Path(args.input_dir), Path(args.output_file))
    except FileNotFoundError as exc:
        LOG.error("%s", exc)
        return 1

    if result.processed:
        LOG.info("Merged file: %s", result.output_file)
        LOG.info("Merge report: %s", report_path(result.output_file))
    return 0


if __name__ == "__main__":
    sys.exit(main())
