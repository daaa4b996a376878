"""Turns loosely structured oracle output into canonical records.

Everything here is pure: no I/O, no clock except the current year used when
a textual date omits one.
"""

import logging
import math
import re
from datetime import date
from typing import Any

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser

from ..config import (
    CANCELLATION_MARKERS,
    DEFAULT_CHECK_STATUS,
    TWO_DIGIT_YEAR_PIVOT,
    UNIT_SUFFIX_PATTERN,
)
from ..constants import MONTHS
from ..exceptions import NoDataError, ParseError
from ..models.document import (
    CanonicalRecord,
    DocumentDetails,
    ExtractedItem,
    StructuredExtraction,
)

logger = logging.getLogger(__name__)

_DASHED_SHORT_DATE = re.compile(r"(\d{1,2})-(\d{1,2})-(\d{2})")
_SLASHED_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_ISO_DATE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")
_MONTH_NAME = r"(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"
_DAY_FIRST_TEXT_DATE = re.compile(
    r"\b(\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?" + _MONTH_NAME + r"(?:,?\s+(\d{4}))?",
    re.IGNORECASE,
)
_MONTH_FIRST_TEXT_DATE = re.compile(
    r"\b" + _MONTH_NAME + r"\s+(\d{1,2})(?:st|nd|rd|th)?\b(?:,?\s+(\d{4}))?",
    re.IGNORECASE,
)


def _format_date(day: int | str, month: int | str, year: int | str) -> str:
    return f"{int(day):02d}/{int(month):02d}/{int(year):04d}"


def _expand_year(two_digit_year: str) -> int:
    year = int(two_digit_year)
    return 2000 + year if year < TWO_DIGIT_YEAR_PIVOT else 1900 + year


def normalize_date(value: Any, today: date | None = None) -> str:
    """Normalize a date string to DD/MM/YYYY.

    Patterns are tried in a fixed order and the first match wins:
    DD-MM-YY, DD/MM/YYYY, YYYY-MM-DD, then a textual month with optional
    ordinal suffix and optional year. The numeric patterns must match the
    whole value, so mixed forms like "20-02-2025", "20/02/25" or
    "Date: 20/02/2025" come back blank rather than guessed.

    Args:
        value: Raw date as read from the document
        today: Reference date supplying the year for textual dates without one

    Returns:
        The normalized date, or an empty string if nothing matched

    """
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""

    match = _DASHED_SHORT_DATE.fullmatch(text)
    if match:
        day, month, year = match.groups()
        return _format_date(day, month, _expand_year(year))

    match = _SLASHED_DATE.fullmatch(text)
    if match:
        day, month, year = match.groups()
        return _format_date(day, month, year)

    match = _ISO_DATE.fullmatch(text)
    if match:
        year, month, day = match.groups()
        return _format_date(day, month, year)

    current_year = (today or date.today()).year

    match = _DAY_FIRST_TEXT_DATE.search(text)
    if match:
        day, month_name, year = match.groups()
        return _format_date(day, MONTHS[month_name[:3].lower()], year or current_year)

    match = _MONTH_FIRST_TEXT_DATE.search(text)
    if match:
        month_name, day, year = match.groups()
        return _format_date(day, MONTHS[month_name[:3].lower()], year or current_year)

    return ""


def parse_quantity(value: Any) -> float:
    """Parse a quantity, dropping a trailing unit such as "kg" or "pcs".

    Args:
        value: Quantity as read from the document, number or text

    Returns:
        The parsed quantity, or 0 when the value is missing or not numeric

    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = UNIT_SUFFIX_PATTERN.sub("", str(value).strip()).strip()
        try:
            number = float(text)
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


def is_struck_out(item: dict[str, Any]) -> bool:
    """Whether an item was cancelled on the document or has no product."""
    product = _text(item.get("product"))
    quantity = _text(item.get("quantity")).lower()
    if not product:
        return True
    product_lower = product.lower()
    return any(
        marker in product_lower or marker in quantity for marker in CANCELLATION_MARKERS
    )


def parse_extraction_json(raw_text: str | None) -> dict[str, Any]:
    """Read the JSON object out of an oracle response.

    Raises:
        NoDataError: If the response is empty
        ParseError: If the response is not a JSON object

    """
    if raw_text is None or not str(raw_text).strip():
        raise NoDataError("The extraction service returned an empty response.")

    parser = JsonOutputParser()
    try:
        payload = parser.parse(str(raw_text))
    except OutputParserException as e:
        logger.warning(f"Unparseable extraction response: {str(raw_text)[:200]}")
        raise ParseError() from e

    if not isinstance(payload, dict):
        raise ParseError()
    return payload


def build_structured_extraction(payload: dict[str, Any]) -> StructuredExtraction:
    """Build document details and surviving items from a parsed response.

    Raises:
        NoDataError: If there are no items, or every item was struck out

    """
    raw_details = payload.get("documentDetails")
    if not isinstance(raw_details, dict):
        raw_details = {}
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise NoDataError()

    details = _build_details(raw_details)

    items = []
    for raw_item in raw_items:
        if not isinstance(raw_item, dict):
            continue
        item = _build_item(raw_item)
        if item.struck_out:
            logger.info(f"Dropping struck-out item: {raw_item.get('product')!r}")
            continue
        items.append(item)

    if not items:
        raise NoDataError("Every item on the document was struck out or blank.")

    return StructuredExtraction(details=details, items=items)


def to_canonical_records(extraction: StructuredExtraction) -> list[CanonicalRecord]:
    """Flatten a structured extraction to one record per item."""
    details = extraction.details
    return [
        CanonicalRecord(
            date=normalize_date(details.date),
            time=details.time,
            supplier=details.supplier,
            product=item.product,
            qty=item.quantity,
            order_number=details.order_number,
            invoice_number=details.invoice_number,
            batch_code=item.batch_code,
            use_by_date=item.use_by_date,
            temp_check=item.temp_check,
            product_integrity_check=item.product_integrity_check,
            weight_check=item.weight_check,
            comments=item.comments,
            signature=details.signature,
        )
        for item in extraction.items
    ]


def validate_records(records: list[CanonicalRecord]) -> list[CanonicalRecord]:
    """Apply post-hoc fixes: no zero quantities, no blank products."""
    for index, record in enumerate(records, start=1):
        if record.qty <= 0:
            record.qty = 1.0
        if not record.product.strip():
            record.product = f"Item {index}"
    return records


def normalize_response(
    raw_text: str | None,
) -> tuple[StructuredExtraction, list[CanonicalRecord]]:
    """Run the full normalization of one oracle response.

    Returns:
        The structured extraction (for learning) and the canonical records

    Raises:
        ParseError: If the response is not JSON
        NoDataError: If no usable items remain

    """
    payload = parse_extraction_json(raw_text)
    extraction = build_structured_extraction(payload)
    records = validate_records(to_canonical_records(extraction))
    return extraction, records


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _check(value: Any) -> str:
    return _text(value) or DEFAULT_CHECK_STATUS


def _build_details(raw: dict[str, Any]) -> DocumentDetails:
    document_number = _text(raw.get("documentNumber"))
    return DocumentDetails(
        supplier=_text(raw.get("supplier")),
        document_type=_text(raw.get("documentType")),
        document_number=document_number,
        order_number=_text(raw.get("orderNumber")) or document_number,
        invoice_number=_text(raw.get("invoiceNumber")) or document_number,
        date=_text(raw.get("date") or raw.get("receivedDate")),
        time=_text(raw.get("time")),
        received_by=_text(raw.get("receivedBy")),
        signature=_text(raw.get("signature")),
    )


def _build_item(raw: dict[str, Any]) -> ExtractedItem:
    raw_use_by = _text(raw.get("useByDate"))
    return ExtractedItem(
        product=_text(raw.get("product")),
        quantity=parse_quantity(raw.get("quantity")),
        quantity_text=_text(raw.get("quantity")),
        batch_code=_text(raw.get("batchCode")),
        use_by_date=normalize_date(raw_use_by) or raw_use_by,
        temp_check=_check(raw.get("tempCheck")),
        product_integrity_check=_check(raw.get("productIntegrityCheck")),
        weight_check=_check(raw.get("weightCheck")),
        comments=_text(raw.get("comments")),
        unit_price=_text(raw.get("unitPrice")),
        total_price=_text(raw.get("totalPrice")),
        struck_out=is_struck_out(raw),
    )
