"""Learned per-supplier document format records.

A DocumentFormat is kept for every distinct (supplier, document type) pair.
Serialization uses camelCase keys so the memory file stays compatible with
files written by earlier versions of the tool.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..constants import (
    DEFAULT_ITEM_SEPARATORS,
    DEFAULT_SIGNATURE_LOCATION,
    DEFAULT_SPECIAL_INSTRUCTIONS,
    ITEM_FIELD_DESCRIPTIONS,
)
from .document_type import (
    DateFormat,
    DocumentType,
    PriceFormat,
    QuantityFormat,
    TimeFormat,
)


def format_key(supplier: str, document_type: str | DocumentType) -> str:
    """Composite, case-insensitive key for a supplier's document format."""
    if isinstance(document_type, DocumentType):
        document_type = document_type.value
    return f"{supplier.strip().lower()}-{document_type.strip().lower()}"


def union_tags(existing: list[str], new: list[str]) -> list[str]:
    """Add unseen tags to an ordered tag set without dropping any."""
    merged = list(existing)
    for tag in new:
        if tag not in merged:
            merged.append(tag)
    return merged


@dataclass
class ExtractionTemplate:
    """Structural hints inferred from a supplier's first extraction."""

    date_format: DateFormat = DateFormat.DAY_MONTH_YEAR_SLASH
    time_format: TimeFormat = TimeFormat.TWENTY_FOUR_HOUR
    quantity_format: QuantityFormat = QuantityFormat.DECIMAL
    price_format: PriceFormat = PriceFormat.CURRENCY
    header_location: str = "top"
    items_section: str = "center"
    common_fields: dict[str, str] = field(default_factory=dict)
    item_fields: dict[str, str] = field(
        default_factory=lambda: dict(ITEM_FIELD_DESCRIPTIONS)
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "headerLocation": self.header_location,
            "dateFormat": self.date_format.value,
            "timeFormat": self.time_format.value,
            "itemsSection": self.items_section,
            "quantityFormat": self.quantity_format.value,
            "priceFormat": self.price_format.value,
            "commonFields": dict(self.common_fields),
            "itemFields": dict(self.item_fields),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractionTemplate":
        return cls(
            date_format=_enum_or_default(
                DateFormat, data.get("dateFormat"), DateFormat.DAY_MONTH_YEAR_SLASH
            ),
            time_format=_enum_or_default(
                TimeFormat, data.get("timeFormat"), TimeFormat.TWENTY_FOUR_HOUR
            ),
            quantity_format=_enum_or_default(
                QuantityFormat, data.get("quantityFormat"), QuantityFormat.DECIMAL
            ),
            price_format=_enum_or_default(
                PriceFormat, data.get("priceFormat"), PriceFormat.CURRENCY
            ),
            header_location=data.get("headerLocation", "top"),
            items_section=data.get("itemsSection", "center"),
            common_fields=dict(data.get("commonFields") or {}),
            item_fields=dict(data.get("itemFields") or ITEM_FIELD_DESCRIPTIONS),
        )


@dataclass
class ExtractionHints:
    """Pattern tags accumulated across every extraction for a format."""

    date_patterns: list[str] = field(default_factory=list)
    quantity_patterns: list[str] = field(default_factory=list)
    item_separators: list[str] = field(
        default_factory=lambda: list(DEFAULT_ITEM_SEPARATORS)
    )
    signature_location: str = DEFAULT_SIGNATURE_LOCATION
    special_instructions: list[str] = field(
        default_factory=lambda: list(DEFAULT_SPECIAL_INSTRUCTIONS)
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "datePatterns": list(self.date_patterns),
            "quantityPatterns": list(self.quantity_patterns),
            "itemSeparators": list(self.item_separators),
            "signatureLocation": self.signature_location,
            "specialInstructions": list(self.special_instructions),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractionHints":
        return cls(
            date_patterns=union_tags([], data.get("datePatterns") or []),
            quantity_patterns=union_tags([], data.get("quantityPatterns") or []),
            item_separators=list(data.get("itemSeparators") or DEFAULT_ITEM_SEPARATORS),
            signature_location=data.get("signatureLocation", DEFAULT_SIGNATURE_LOCATION),
            special_instructions=list(
                data.get("specialInstructions") or DEFAULT_SPECIAL_INSTRUCTIONS
            ),
        )


@dataclass
class AccuracyStats:
    """How well extraction has gone for a format."""

    success_rate: float = 100
    common_errors: list[str] = field(default_factory=list)
    last_updated: str = field(default_factory=lambda: datetime.now().isoformat())
    extraction_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "successRate": self.success_rate,
            "commonErrors": list(self.common_errors),
            "lastUpdated": self.last_updated,
            "extractionCount": self.extraction_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccuracyStats":
        return cls(
            success_rate=data.get("successRate", 100),
            common_errors=union_tags([], data.get("commonErrors") or []),
            last_updated=data.get("lastUpdated") or datetime.now().isoformat(),
            extraction_count=int(data.get("extractionCount", 0)),
        )


@dataclass
class CorrectionEntry:
    """A reviewer's correction of an extraction."""

    original: dict[str, Any]
    corrected: dict[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "original": self.original,
            "corrected": self.corrected,
            "timestamp": self.timestamp,
        }


@dataclass
class FormatExamples:
    """Recent good extractions plus the full correction log."""

    good_extractions: list[dict[str, Any]] = field(default_factory=list)
    corrections: list[CorrectionEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "goodExtractions": list(self.good_extractions),
            "corrections": [entry.to_dict() for entry in self.corrections],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FormatExamples":
        return cls(
            good_extractions=list(data.get("goodExtractions") or []),
            corrections=[
                CorrectionEntry(
                    original=entry.get("original") or {},
                    corrected=entry.get("corrected") or {},
                    timestamp=entry.get("timestamp") or "",
                )
                for entry in data.get("corrections") or []
            ],
        )


@dataclass
class DocumentFormat:
    """Everything learned about one supplier's documents of one type."""

    id: str
    supplier: str
    document_type: DocumentType
    extraction_template: ExtractionTemplate = field(default_factory=ExtractionTemplate)
    extraction_hints: ExtractionHints = field(default_factory=ExtractionHints)
    accuracy: AccuracyStats = field(default_factory=AccuracyStats)
    examples: FormatExamples = field(default_factory=FormatExamples)

    def to_dict(self) -> dict[str, Any]:
        """Convert format to dictionary for the memory file."""
        return {
            "id": self.id,
            "supplier": self.supplier,
            "documentType": self.document_type.value,
            "extractionTemplate": self.extraction_template.to_dict(),
            "extractionHints": self.extraction_hints.to_dict(),
            "accuracy": self.accuracy.to_dict(),
            "examples": self.examples.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentFormat":
        """Rebuild a format from its memory file entry."""
        document_type = DocumentType.from_string(data.get("documentType"))
        if document_type is None:
            raise ValueError(f"Invalid document type: {data.get('documentType')}")
        supplier = data.get("supplier", "")
        return cls(
            id=data.get("id") or format_key(supplier, document_type),
            supplier=supplier,
            document_type=document_type,
            extraction_template=ExtractionTemplate.from_dict(
                data.get("extractionTemplate") or {}
            ),
            extraction_hints=ExtractionHints.from_dict(data.get("extractionHints") or {}),
            accuracy=AccuracyStats.from_dict(data.get("accuracy") or {}),
            examples=FormatExamples.from_dict(data.get("examples") or {}),
        )


def _enum_or_default(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default
