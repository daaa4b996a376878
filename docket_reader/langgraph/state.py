from typing import Any, TypedDict

from ..models.document import CanonicalRecord, StructuredExtraction
from ..models.format_memory import DocumentFormat


class ExtractionState(TypedDict, total=False):
    """State that flows through the LangGraph extraction workflow."""

    # Input fields
    image_name: str
    image_bytes: bytes

    # Collaborators
    memory_store: Any  # FormatMemoryStore
    oracle_client: Any  # VisionOracleClient

    # Supplier detection
    supplier: str | None
    document_type: str | None
    classification_error: str | None

    # Memory lookup
    document_format: DocumentFormat | None

    # Extraction results
    raw_response: str | None
    oracle_attempts: int
    extraction: StructuredExtraction | None
    records: list[CanonicalRecord]

    # Learning
    learned: bool
    learned_format: DocumentFormat | None

    # Workflow control
    error: str | None
    error_kind: str | None
