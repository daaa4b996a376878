"""Document type and learned format tags."""

from enum import Enum


class DocumentType(str, Enum):
    """Commercial document types the pipeline understands."""

    RECEIPT = "receipt"
    INVOICE = "invoice"
    DOCKET = "docket"
    PURCHASE_ORDER = "purchase_order"

    @property
    def display_name(self) -> str:
        """Get human-readable display name."""
        return self.value.replace("_", " ").title()

    @classmethod
    def from_string(cls, value: str | None) -> "DocumentType | None":
        """Create DocumentType from loosely formatted model output."""
        if not value:
            return None
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {
            "delivery_docket": "docket",
            "delivery_note": "docket",
            "tax_invoice": "invoice",
            "po": "purchase_order",
            "order": "purchase_order",
        }
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None


class DateFormat(str, Enum):
    """Date layout observed on a supplier's documents."""

    DAY_MONTH_YEAR_SLASH = "DD/MM/YYYY"
    DAY_MONTH_YEAR_DASH = "DD-MM-YY"


class DatePattern(str, Enum):
    """Date pattern tags accumulated as extraction hints."""

    DASHED = "DD-MM-YY"
    SLASHED = "DD/MM/YYYY"
    ORDINAL_MONTH = "DD ordinal Month YYYY"


class TimeFormat(str, Enum):
    """Time layout observed on a supplier's documents."""

    TWENTY_FOUR_HOUR = "HH:MM"
    TWELVE_HOUR = "HH:MM AM/PM"


class QuantityFormat(str, Enum):
    """Quantity precision observed on a supplier's documents."""

    DECIMAL = "decimal"
    INTEGER = "integer"


class PriceFormat(str, Enum):
    """Whether a supplier's documents carry prices."""

    CURRENCY = "currency"
    NONE = "none"


class ErrorKind(str, Enum):
    """Error tags derived from human corrections."""

    DATE_EXTRACTION_ERROR = "date_extraction_error"
    ITEM_COUNT_MISMATCH = "item_count_mismatch"
    QUANTITY_PARSING_ERROR = "quantity_parsing_error"
