"""Utility functions for summarising learned format memory."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..models.format_memory import DocumentFormat

if TYPE_CHECKING:
    from ..processing.format_memory_store import FormatMemoryStore


@dataclass
class FormatSummary:
    """One learned format, reduced to what a status panel shows."""

    id: str
    supplier: str
    document_type: str
    success_rate: float
    extraction_count: int
    corrections: int
    common_errors: list[str]
    last_updated: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "supplier": self.supplier,
            "documentType": self.document_type,
            "successRate": self.success_rate,
            "extractionCount": self.extraction_count,
            "corrections": self.corrections,
            "commonErrors": list(self.common_errors),
            "lastUpdated": self.last_updated,
        }


@dataclass
class MemoryStatistics:
    """Container for format memory statistics."""

    total_formats: int
    total_extractions: int
    total_corrections: int
    average_success_rate: float
    formats: list[FormatSummary] = field(default_factory=list)

    def to_display_string(self) -> str:
        """Format statistics for display."""
        return (
            f"Formats: {self.total_formats} | Extractions: {self.total_extractions} | "
            f"Corrections: {self.total_corrections} | "
            f"Avg success: {self.average_success_rate:.0f}%"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFormats": self.total_formats,
            "totalExtractions": self.total_extractions,
            "totalCorrections": self.total_corrections,
            "averageSuccessRate": self.average_success_rate,
            "formats": [summary.to_dict() for summary in self.formats],
        }


def calculate_memory_statistics(formats: list[DocumentFormat]) -> MemoryStatistics:
    """Calculate statistics for a list of learned formats.

    Args:
        formats: Learned document formats to analyze

    Returns:
        MemoryStatistics object containing calculated statistics

    """
    if not formats:
        return MemoryStatistics(
            total_formats=0,
            total_extractions=0,
            total_corrections=0,
            average_success_rate=0.0,
        )

    summaries = [
        FormatSummary(
            id=fmt.id,
            supplier=fmt.supplier,
            document_type=fmt.document_type.value,
            success_rate=fmt.accuracy.success_rate,
            extraction_count=fmt.accuracy.extraction_count,
            corrections=len(fmt.examples.corrections),
            common_errors=list(fmt.accuracy.common_errors),
            last_updated=fmt.accuracy.last_updated,
        )
        for fmt in formats
    ]
    summaries.sort(key=lambda s: s.extraction_count, reverse=True)

    return MemoryStatistics(
        total_formats=len(summaries),
        total_extractions=sum(s.extraction_count for s in summaries),
        total_corrections=sum(s.corrections for s in summaries),
        average_success_rate=sum(s.success_rate for s in summaries) / len(summaries),
        formats=summaries,
    )


def get_memory_statistics(store: "FormatMemoryStore") -> MemoryStatistics:
    """Statistics for everything a memory store has learned."""
    return calculate_memory_statistics(store.get_all())
