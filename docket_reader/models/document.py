from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config import DEFAULT_CHECK_STATUS
from ..constants import CANONICAL_COLUMNS


@dataclass
class ExtractedItem:
    """One line item read from a document image."""

    product: str
    quantity: float = 0.0
    quantity_text: str = ""  # as read, before unit stripping
    batch_code: str = ""
    use_by_date: str = ""
    temp_check: str = DEFAULT_CHECK_STATUS
    product_integrity_check: str = DEFAULT_CHECK_STATUS
    weight_check: str = DEFAULT_CHECK_STATUS
    comments: str = ""
    unit_price: str = ""
    total_price: str = ""

    # Set during normalization, never persisted
    struck_out: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert item to the camelCase shape kept in format memory."""
        return {
            "product": self.product,
            "quantity": self.quantity_text or self.quantity,
            "batchCode": self.batch_code,
            "useByDate": self.use_by_date,
            "tempCheck": self.temp_check,
            "productIntegrityCheck": self.product_integrity_check,
            "weightCheck": self.weight_check,
            "comments": self.comments,
            "unitPrice": self.unit_price,
            "totalPrice": self.total_price,
        }


@dataclass
class DocumentDetails:
    """Header and footer fields shared by every item on a document."""

    supplier: str = ""
    document_type: str = ""
    document_number: str = ""
    order_number: str = ""
    invoice_number: str = ""
    date: str = ""
    time: str = ""
    received_by: str = ""
    signature: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert details to the camelCase shape kept in format memory."""
        return {
            "supplier": self.supplier,
            "documentType": self.document_type,
            "documentNumber": self.document_number,
            "orderNumber": self.order_number,
            "invoiceNumber": self.invoice_number,
            "date": self.date,
            "time": self.time,
            "receivedBy": self.received_by,
            "signature": self.signature,
        }


@dataclass
class StructuredExtraction:
    """A whole document as read by the oracle, after struck-out filtering."""

    details: DocumentDetails
    items: list[ExtractedItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "documentDetails": self.details.to_dict(),
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class CanonicalRecord:
    """One spreadsheet row: document details flattened onto a single item."""

    date: str = ""
    time: str = ""
    supplier: str = ""
    product: str = ""
    qty: float = 0.0
    order_number: str = ""
    invoice_number: str = ""
    batch_code: str = ""
    use_by_date: str = ""
    temp_check: str = DEFAULT_CHECK_STATUS
    product_integrity_check: str = DEFAULT_CHECK_STATUS
    weight_check: str = DEFAULT_CHECK_STATUS
    comments: str = ""
    signature: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert record to a dict keyed in sink column order."""
        return dict(zip(CANONICAL_COLUMNS, self.to_row()))

    def to_row(self) -> list[Any]:
        """Values in the fixed column order the spreadsheet sink expects."""
        return [
            self.date,
            self.time,
            self.supplier,
            self.product,
            self.qty,
            self.order_number,
            self.invoice_number,
            self.batch_code,
            self.use_by_date,
            self.temp_check,
            self.product_integrity_check,
            self.weight_check,
            self.comments,
            self.signature,
        ]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CanonicalRecord":
        """Build a record from a sink-shaped dict, e.g. an edited table row.

        Quantities typed with a unit, such as "5.5 kg", keep their number.
        """
        from ..processing.normalizer import parse_quantity

        return cls(
            date=str(data.get("date") or ""),
            time=str(data.get("time") or ""),
            supplier=str(data.get("supplier") or ""),
            product=str(data.get("product") or ""),
            qty=parse_quantity(data.get("qty")),
            order_number=str(data.get("orderNumber") or ""),
            invoice_number=str(data.get("invoiceNumber") or ""),
            batch_code=str(data.get("batchCode") or ""),
            use_by_date=str(data.get("useByDate") or ""),
            temp_check=str(data.get("tempCheck") or DEFAULT_CHECK_STATUS),
            product_integrity_check=str(
                data.get("productIntegrityCheck") or DEFAULT_CHECK_STATUS
            ),
            weight_check=str(data.get("weightCheck") or DEFAULT_CHECK_STATUS),
            comments=str(data.get("comments") or ""),
            signature=str(data.get("signature") or ""),
        )


def records_to_payload(records: list[CanonicalRecord]) -> dict[str, Any]:
    """Regroup flattened rows into the documentDetails + items shape.

    Corrections arrive as edited table rows; format memory compares them in
    the same structure it learns extractions from.
    """
    first = records[0] if records else CanonicalRecord()
    return {
        "documentDetails": {
            "supplier": first.supplier,
            "date": first.date,
            "time": first.time,
            "orderNumber": first.order_number,
            "invoiceNumber": first.invoice_number,
            "signature": first.signature,
        },
        "items": [
            {
                "product": record.product,
                "quantity": record.qty,
                "batchCode": record.batch_code,
                "useByDate": record.use_by_date,
            }
            for record in records
        ],
    }


class ExtractionStatus(str, Enum):
    """Outcome of extracting one image."""

    SUCCESS = "success"
    NO_DATA = "no_data"
    FAILED = "failed"
    INVALID_INPUT = "invalid_input"


@dataclass
class ExtractionDiagnostics:
    """Quality indicators reported alongside extracted records."""

    supplier: str = ""
    document_type: str = ""
    items_extracted: int = 0
    used_memory: bool = False
    success_rate: float | None = None
    extraction_count: int = 0
    required_fields: str = ""
    logical_consistency: str = ""
    format_adherence: str = ""
    oracle_attempts: int = 0
    classification_error: str | None = None
    learned: bool = False

    def to_display_string(self) -> str:
        """Format diagnostics as a short multi-line summary."""
        rate = f"{self.success_rate:.0f}%" if self.success_rate is not None else "Unknown"
        return (
            f"Supplier: {self.supplier or 'Not detected'}\n"
            f"Document Type: {self.document_type or 'Unknown'}\n"
            f"Items Extracted: {self.items_extracted}\n"
            f"Confidence: {rate}\n"
            f"Previous Extractions: {self.extraction_count}\n"
            f"All required fields present: {self.required_fields}\n"
            f"Logical consistency: {self.logical_consistency}\n"
            f"Format adherence: {self.format_adherence}"
        )


@dataclass
class ExtractionResult:
    """Records and diagnostics for one image."""

    image_name: str
    status: ExtractionStatus
    records: list[CanonicalRecord] = field(default_factory=list)
    diagnostics: ExtractionDiagnostics = field(default_factory=ExtractionDiagnostics)
    error: str | None = None
    error_kind: str | None = None

    @property
    def success(self) -> bool:
        return self.status == ExtractionStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            "image": self.image_name,
            "status": self.status.value,
            "records": [record.to_dict() for record in self.records],
            "error": self.error,
            "error_kind": self.error_kind,
            "diagnostics": {
                "supplier": self.diagnostics.supplier,
                "document_type": self.diagnostics.document_type,
                "items_extracted": self.diagnostics.items_extracted,
                "used_memory": self.diagnostics.used_memory,
                "success_rate": self.diagnostics.success_rate,
                "extraction_count": self.diagnostics.extraction_count,
                "required_fields": self.diagnostics.required_fields,
                "logical_consistency": self.diagnostics.logical_consistency,
                "format_adherence": self.diagnostics.format_adherence,
                "oracle_attempts": self.diagnostics.oracle_attempts,
                "learned": self.diagnostics.learned,
            },
        }
