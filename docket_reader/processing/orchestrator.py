"""Two-phase extraction of document photos into canonical records."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from ..langgraph.state import ExtractionState
from ..langgraph.workflow import run_extraction
from ..models.document import (
    ExtractionDiagnostics,
    ExtractionResult,
    ExtractionStatus,
)
from ..services.oracle_client import VisionOracleClient
from .format_memory_store import FormatMemoryStore
from .quality_checks import (
    validate_format_adherence,
    validate_logical_consistency,
    validate_required_fields,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR_KIND = {
    "invalid_input": ExtractionStatus.INVALID_INPUT,
    "no_data": ExtractionStatus.NO_DATA,
}


class ExtractionOrchestrator:
    """Runs images through detection, lookup, extraction, normalization and learning.

    The memory store and oracle client are shared by every extraction this
    orchestrator runs, so several images can be processed concurrently
    against the same learned formats.
    """

    def __init__(
        self,
        memory_store: FormatMemoryStore,
        oracle_client: VisionOracleClient | None = None,
    ) -> None:
        self.memory_store = memory_store
        self.oracle_client = oracle_client or VisionOracleClient()

    async def extract(self, image_bytes: bytes, image_name: str = "image") -> ExtractionResult:
        """Extract records from one image.

        Never raises for oracle, parse or validation failures; those come
        back as a result with an empty record list and a user-facing error.

        Args:
            image_bytes: The document photo
            image_name: Label used in logs and results

        Returns:
            ExtractionResult with records and diagnostics

        """
        logger.info(f"Extracting {image_name} ({len(image_bytes or b'')} bytes)")
        state = await run_extraction(
            image_bytes, image_name, self.memory_store, self.oracle_client
        )
        result = build_result(image_name, state)
        logger.info(
            f"Finished {image_name}: {result.status.value}, {len(result.records)} records"
        )
        return result

    async def extract_many(
        self,
        images: Sequence[tuple[str, bytes]],
        progress_callback: Callable[[int, int, ExtractionResult], None] | None = None,
    ) -> list[ExtractionResult]:
        """Extract several images concurrently.

        Args:
            images: (name, bytes) pairs
            progress_callback: Called with (completed, total, result) as each
                image finishes

        Returns:
            Results in the same order as the input images

        """
        total = len(images)
        completed = 0

        async def run_one(name: str, image_bytes: bytes) -> ExtractionResult:
            nonlocal completed
            try:
                result = await self.extract(image_bytes, name)
            except Exception as e:
                logger.exception(f"Unexpected failure extracting {name}")
                result = ExtractionResult(
                    image_name=name,
                    status=ExtractionStatus.FAILED,
                    error=f"Extraction failed: {e!s}",
                    error_kind="unknown",
                )
            completed += 1
            if progress_callback:
                progress_callback(completed, total, result)
            return result

        return list(
            await asyncio.gather(*(run_one(name, data) for name, data in images))
        )


def build_result(image_name: str, state: ExtractionState | dict[str, Any]) -> ExtractionResult:
    """Translate a finished workflow state into the caller-facing result."""
    document_format = state.get("learned_format") or state.get("document_format")
    diagnostics = ExtractionDiagnostics(
        supplier=state.get("supplier") or "",
        document_type=state.get("document_type") or "",
        used_memory=state.get("document_format") is not None,
        oracle_attempts=state.get("oracle_attempts") or 0,
        classification_error=state.get("classification_error"),
        learned=bool(state.get("learned")),
    )
    if document_format is not None:
        diagnostics.success_rate = document_format.accuracy.success_rate
        diagnostics.extraction_count = document_format.accuracy.extraction_count

    error = state.get("error")
    if error:
        kind = state.get("error_kind")
        return ExtractionResult(
            image_name=image_name,
            status=_STATUS_BY_ERROR_KIND.get(kind, ExtractionStatus.FAILED),
            diagnostics=diagnostics,
            error=error,
            error_kind=kind,
        )

    extraction = state["extraction"]
    records = state.get("records") or []
    diagnostics.supplier = diagnostics.supplier or extraction.details.supplier
    diagnostics.document_type = diagnostics.document_type or extraction.details.document_type
    diagnostics.items_extracted = len(records)
    diagnostics.required_fields = validate_required_fields(extraction)
    diagnostics.logical_consistency = validate_logical_consistency(records)
    diagnostics.format_adherence = validate_format_adherence(
        extraction, state.get("document_format")
    )
    return ExtractionResult(
        image_name=image_name,
        status=ExtractionStatus.SUCCESS,
        records=records,
        diagnostics=diagnostics,
    )
