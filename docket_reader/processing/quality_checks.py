"""Quality indicators reported with every extraction."""

import re

from ..models.document import CanonicalRecord, StructuredExtraction
from ..models.document_type import DateFormat
from ..models.format_memory import DocumentFormat

_DATE_FORMAT_PATTERNS = {
    DateFormat.DAY_MONTH_YEAR_SLASH: re.compile(r"^\d{2}/\d{2}/\d{4}$"),
    DateFormat.DAY_MONTH_YEAR_DASH: re.compile(r"^\d{2}-\d{2}-\d{2}$"),
}


def validate_required_fields(extraction: StructuredExtraction) -> str:
    """Check that the supplier and at least one item were found."""
    missing = []
    if not extraction.details.supplier:
        missing.append("supplier")
    if not extraction.items:
        missing.append("items")
    return "Yes" if not missing else f"Missing: {', '.join(missing)}"


def validate_logical_consistency(records: list[CanonicalRecord]) -> str:
    """Check every record has a positive quantity and a product."""
    valid_quantities = all(record.qty > 0 for record in records)
    valid_products = all(record.product for record in records)
    return "Yes" if valid_quantities and valid_products else "Issues detected"


def validate_format_adherence(
    extraction: StructuredExtraction, document_format: DocumentFormat | None
) -> str:
    """Compare the raw document date against the learned date format."""
    if document_format is None:
        return "No format to compare"
    raw_date = extraction.details.date
    expected = document_format.extraction_template.date_format
    if raw_date and _DATE_FORMAT_PATTERNS[expected].match(raw_date):
        return "Yes"
    return "Format deviation detected"
