"""CSV export of canonical records in spreadsheet column order."""

import csv
import logging
from collections.abc import Iterable
from pathlib import Path

from ..constants import COLUMN_HEADERS
from ..models.document import CanonicalRecord

logger = logging.getLogger(__name__)


def export_csv(
    records: Iterable[CanonicalRecord],
    filepath: Path | str,
    append: bool = False,
) -> int:
    """Export records to a CSV file.

    Args:
        records: Records to write, one row each
        filepath: Path to save the CSV file
        append: Add rows to an existing file instead of replacing it

    Returns:
        Number of rows written

    """
    path = Path(filepath)
    write_header = not append or not path.exists() or path.stat().st_size == 0
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, "a" if append else "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        if write_header:
            writer.writerow(COLUMN_HEADERS)
        for record in records:
            writer.writerow(record.to_row())
            count += 1

    logger.info(f"Wrote {count} records to {path}")
    return count
