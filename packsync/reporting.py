import csv
import logging
from pathlib import Path
from typing import List

from .models import PackedManifest
from .unpacking.selector import UnpackDecision
from .unpacking.writer import WriteFailure


def log_pack_summary(manifest: PackedManifest, output: Path):
    logging.info(f"Packed {len(manifest.files)} files to {output} (manifest {manifest.manifest_hash})")
    changes = manifest.changes
    if changes is None:
        return
    if changes.is_empty():
        logging.info("  No changes since the previous manifest.")
        return
    if changes.new:
        logging.info(f"  New files: {len(changes.new)}")
    if changes.modified:
        logging.info(f"  Modified files: {len(changes.modified)}")
    if changes.renamed:
        logging.info(f"  Renamed files: {len(changes.renamed)}")
    if changes.removed:
        logging.info(f"  Removed files: {len(changes.removed)}")


def log_unpack_summary(decisions: List[UnpackDecision], failures: List[WriteFailure], dest_root: Path):
    copied = sum(1 for d in decisions if d.copy)
    skipped = len(decisions) - copied
    logging.info(f"Unpacked {copied} files to {dest_root} ({skipped} skipped)")
    if failures:
        logging.error(f"{len(failures)} files could not be unpacked:")
        for failure in failures:
            logging.error(f"  {failure.path}: {failure.error}")


def write_decision_report(output_csv: Path, decisions: List[UnpackDecision], failures: List[WriteFailure]):
    """
    Writes one row per archived file with the unpack outcome, so a run can
    be audited after the fact.
    """
    headers = ["Path", "Action", "Reason", "Error"]
    rows = [[d.original_path, d.action.value, d.reason.value, ""] for d in decisions]
    rows += [[f.path, "error", "", f.error] for f in failures]
    rows.sort(key=lambda r: r[0])

    output_csv = Path(output_csv)
    output_csv.parent.mkdir(parents=True, exist_ok=True)
    with open(output_csv, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        writer.writerows(rows)

    logging.info(f"Report written to {output_csv} ({len(rows)} rows)")
