"""Persistent memory of per-supplier document formats.

The in-memory map is the source of truth while the process runs. Every
mutation is written through to durable storage as a full snapshot.
"""

import asyncio
import copy
import json
import logging
import os
import re
import tempfile
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from ..config import MEMORY_CONFIG, ENV_MEMORY_PATH
from ..exceptions import MemoryStoreError
from ..models.document import StructuredExtraction
from ..models.document_type import (
    DateFormat,
    DatePattern,
    DocumentType,
    ErrorKind,
    PriceFormat,
    QuantityFormat,
    TimeFormat,
)
from ..models.format_memory import (
    AccuracyStats,
    CorrectionEntry,
    DocumentFormat,
    ExtractionHints,
    ExtractionTemplate,
    FormatExamples,
    format_key,
    union_tags,
)

logger = logging.getLogger(__name__)

_ORDINAL_DAY = re.compile(r"\d{1,2}(?:st|nd|rd|th)")


class MemoryPersistence(Protocol):
    """Durable storage for the whole memory map."""

    def load(self) -> dict[str, Any]: ...

    def save(self, data: dict[str, Any]) -> None: ...


class JsonFilePersistence:
    """Stores the memory map as one pretty-printed JSON file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        """Load the memory file; a missing or unreadable file is an empty store."""
        if not self.path.exists():
            logger.info(f"No memory file at {self.path}, starting with empty memory")
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read memory file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Memory file {self.path} is not a JSON object, ignoring it")
            return {}
        return data

    def save(self, data: dict[str, Any]) -> None:
        """Replace the memory file atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class InMemoryPersistence:
    """Keeps the last saved snapshot in memory (for testing)."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.save_count = 0

    def load(self) -> dict[str, Any]:
        return copy.deepcopy(self.data)

    def save(self, data: dict[str, Any]) -> None:
        self.data = copy.deepcopy(data)
        self.save_count += 1


def default_persistence() -> JsonFilePersistence:
    """File persistence at the configured memory path."""
    path = os.getenv(ENV_MEMORY_PATH) or str(MEMORY_CONFIG["memory_path"])
    return JsonFilePersistence(path)


class FormatMemoryStore:
    """Learns and serves extraction templates keyed by supplier and document type."""

    def __init__(
        self,
        persistence: MemoryPersistence | None = None,
        max_good_extractions: int = int(MEMORY_CONFIG["max_good_extractions"]),
        correction_penalty: float = float(MEMORY_CONFIG["correction_penalty"]),
    ) -> None:
        self._persistence = persistence if persistence is not None else default_persistence()
        self.max_good_extractions = max_good_extractions
        self.correction_penalty = correction_penalty
        self._formats: dict[str, DocumentFormat] = {}
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._write_lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        for key, value in self._persistence.load().items():
            try:
                self._formats[key] = DocumentFormat.from_dict(value)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping unreadable memory entry {key!r}: {e}")
        logger.info(f"Loaded {len(self._formats)} learned document formats")

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[key] = lock
        return lock

    async def _persist(self) -> None:
        """Write the full map through to durable storage."""
        async with self._write_lock:
            snapshot = {key: fmt.to_dict() for key, fmt in self._formats.items()}
            try:
                await asyncio.to_thread(self._persistence.save, snapshot)
            except OSError as e:
                raise MemoryStoreError(f"Failed to save document memory: {e}") from e

    def get(
        self, supplier: str, document_type: str | DocumentType
    ) -> DocumentFormat | None:
        """Look up a learned format; unknown keys return None."""
        return self._formats.get(format_key(supplier, document_type))

    def get_all(self) -> list[DocumentFormat]:
        """All learned formats."""
        return list(self._formats.values())

    def __len__(self) -> int:
        return len(self._formats)

    async def learn_from_extraction(
        self,
        supplier: str,
        document_type: str | DocumentType,
        extraction: StructuredExtraction | Mapping[str, Any],
    ) -> DocumentFormat:
        """Fold a successful extraction into the supplier's format.

        The first extraction for a key creates its format, seeding the
        template and hints from the extraction's formatting. Later ones bump
        the extraction count, roll the example window and add any newly seen
        date or quantity pattern tags.

        Args:
            supplier: Supplier name as detected
            document_type: Detected document type
            extraction: The full structured result, not the flattened records

        Returns:
            The created or updated DocumentFormat

        """
        doc_type = _coerce_document_type(document_type)
        payload = _as_payload(extraction)
        key = format_key(supplier, doc_type)

        async with self._lock_for(key):
            fmt = self._formats.get(key)
            if fmt is None:
                fmt = DocumentFormat(
                    id=key,
                    supplier=supplier,
                    document_type=doc_type,
                    extraction_template=analyze_extraction_template(payload),
                    extraction_hints=generate_extraction_hints(payload),
                    accuracy=AccuracyStats(
                        success_rate=MEMORY_CONFIG["initial_success_rate"],
                        extraction_count=1,
                    ),
                    examples=FormatExamples(good_extractions=[payload]),
                )
                self._formats[key] = fmt
                logger.info(f"Learned new document format {key}")
            else:
                fmt.accuracy.extraction_count += 1
                fmt.accuracy.last_updated = datetime.now().isoformat()
                fmt.examples.good_extractions.append(payload)
                if len(fmt.examples.good_extractions) > self.max_good_extractions:
                    fmt.examples.good_extractions = fmt.examples.good_extractions[
                        -self.max_good_extractions :
                    ]
                fmt.extraction_hints = refine_extraction_hints(fmt.extraction_hints, payload)
                logger.info(
                    f"Updated document format {key} "
                    f"(extractions: {fmt.accuracy.extraction_count})"
                )
            await self._persist()
            return fmt

    async def learn_from_correction(
        self,
        supplier: str,
        document_type: str | DocumentType,
        original: StructuredExtraction | Mapping[str, Any],
        corrected: StructuredExtraction | Mapping[str, Any],
    ) -> bool:
        """Record a reviewer's correction against a known format.

        Unknown keys are ignored; corrections only refine formats that an
        extraction has already created.

        Returns:
            True if the correction was applied

        """
        key = format_key(supplier, _coerce_document_type(document_type))
        async with self._lock_for(key):
            fmt = self._formats.get(key)
            if fmt is None:
                logger.info(f"Ignoring correction for unknown document format {key}")
                return False

            original_payload = _as_payload(original)
            corrected_payload = _as_payload(corrected)
            fmt.examples.corrections.append(
                CorrectionEntry(original=original_payload, corrected=corrected_payload)
            )

            error_kind = analyze_error(original_payload, corrected_payload)
            if error_kind and error_kind.value not in fmt.accuracy.common_errors:
                fmt.accuracy.common_errors.append(error_kind.value)

            fmt.accuracy.success_rate = max(
                fmt.accuracy.success_rate - self.correction_penalty, 0
            )
            fmt.accuracy.last_updated = datetime.now().isoformat()
            logger.info(
                f"Recorded correction for {key}: "
                f"{error_kind.value if error_kind else 'no structural error'}, "
                f"success rate now {fmt.accuracy.success_rate}"
            )
            await self._persist()
            return True

    async def clear(self) -> None:
        """Forget every learned format."""
        count = len(self._formats)
        self._formats.clear()
        await self._persist()
        logger.info(f"Cleared {count} learned document formats")


def analyze_extraction_template(payload: Mapping[str, Any]) -> ExtractionTemplate:
    """Infer a template from a supplier's first successful extraction."""
    details = payload.get("documentDetails") or {}
    items = payload.get("items") or []
    return ExtractionTemplate(
        date_format=detect_date_format(details.get("date")),
        time_format=detect_time_format(details.get("time")),
        quantity_format=detect_quantity_format(items),
        price_format=detect_price_format(items),
        common_fields={
            "supplier": details.get("supplier") or "",
            "documentNumber": details.get("documentNumber") or "",
            "signature": details.get("signature") or "",
        },
    )


def generate_extraction_hints(payload: Mapping[str, Any]) -> ExtractionHints:
    details = payload.get("documentDetails") or {}
    return ExtractionHints(
        date_patterns=extract_date_patterns(details.get("date")),
        quantity_patterns=extract_quantity_patterns(payload.get("items") or []),
    )


def refine_extraction_hints(
    hints: ExtractionHints, payload: Mapping[str, Any]
) -> ExtractionHints:
    """Union newly observed pattern tags into existing hints."""
    details = payload.get("documentDetails") or {}
    hints.date_patterns = union_tags(
        hints.date_patterns, extract_date_patterns(details.get("date"))
    )
    hints.quantity_patterns = union_tags(
        hints.quantity_patterns, extract_quantity_patterns(payload.get("items") or [])
    )
    return hints


def detect_date_format(value: str | None) -> DateFormat:
    if value and "-" in value:
        return DateFormat.DAY_MONTH_YEAR_DASH
    return DateFormat.DAY_MONTH_YEAR_SLASH


def detect_time_format(value: str | None) -> TimeFormat:
    if value and ("AM" in value.upper() or "PM" in value.upper()):
        return TimeFormat.TWELVE_HOUR
    return TimeFormat.TWENTY_FOUR_HOUR


def detect_quantity_format(items: list[Mapping[str, Any]]) -> QuantityFormat:
    if not items:
        return QuantityFormat.DECIMAL
    has_decimals = any(
        item.get("quantity") is not None and "." in str(item.get("quantity"))
        for item in items
    )
    return QuantityFormat.DECIMAL if has_decimals else QuantityFormat.INTEGER


def detect_price_format(items: list[Mapping[str, Any]]) -> PriceFormat:
    if not items:
        return PriceFormat.CURRENCY
    has_price = any(item.get("unitPrice") or item.get("totalPrice") for item in items)
    return PriceFormat.CURRENCY if has_price else PriceFormat.NONE


def extract_date_patterns(value: str | None) -> list[str]:
    if not value:
        return []
    patterns = []
    if "-" in value:
        patterns.append(DatePattern.DASHED.value)
    if "/" in value:
        patterns.append(DatePattern.SLASHED.value)
    if _ORDINAL_DAY.search(value):
        patterns.append(DatePattern.ORDINAL_MONTH.value)
    return patterns


def extract_quantity_patterns(items: list[Mapping[str, Any]]) -> list[str]:
    patterns: list[str] = []
    for item in items:
        quantity = item.get("quantity")
        if quantity is None or quantity == "":
            continue
        text = str(quantity)
        if "." in text:
            patterns = union_tags(patterns, [QuantityFormat.DECIMAL.value])
        if re.search(r"\d+", text):
            patterns = union_tags(patterns, [QuantityFormat.INTEGER.value])
    return patterns


def analyze_error(
    original: Mapping[str, Any], corrected: Mapping[str, Any]
) -> ErrorKind | None:
    """Tag a correction with the first structural difference found.

    Checks run in order (date, item count, per-item quantity) and only the
    first match is reported, even when several apply.
    """
    original_details = original.get("documentDetails") or {}
    corrected_details = corrected.get("documentDetails") or {}
    if original_details.get("date") != corrected_details.get("date"):
        return ErrorKind.DATE_EXTRACTION_ERROR

    original_items = original.get("items") or []
    corrected_items = corrected.get("items") or []
    if len(original_items) != len(corrected_items):
        return ErrorKind.ITEM_COUNT_MISMATCH

    for original_item, corrected_item in zip(original_items, corrected_items):
        if original_item.get("quantity") != corrected_item.get("quantity"):
            return ErrorKind.QUANTITY_PARSING_ERROR

    return None


def _coerce_document_type(document_type: str | DocumentType) -> DocumentType:
    if isinstance(document_type, DocumentType):
        return document_type
    doc_type = DocumentType.from_string(document_type)
    if doc_type is None:
        raise ValueError(f"Invalid document type: {document_type}")
    return doc_type


def _as_payload(data: StructuredExtraction | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(data, StructuredExtraction):
        return data.to_dict()
    return copy.deepcopy(dict(data))
