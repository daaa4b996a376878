"""Feeds reviewer corrections back into format memory."""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..exceptions import MemoryStoreError
from ..models.document import CanonicalRecord, records_to_payload
from ..models.document_type import DocumentType
from ..models.format_memory import DocumentFormat
from .format_memory_store import FormatMemoryStore

logger = logging.getLogger(__name__)

RecordsLike = Sequence[CanonicalRecord | Mapping[str, Any]]


class CorrectionLearner:
    """Records human corrections against learned document formats."""

    def __init__(self, memory_store: FormatMemoryStore) -> None:
        self.memory_store = memory_store

    async def submit_correction(
        self,
        original_records: RecordsLike,
        corrected_records: RecordsLike,
        supplier: str,
        document_type: str | DocumentType,
    ) -> bool:
        """Record a correction to an extraction.

        Corrections for a supplier with no learned format are ignored and
        still count as handled.

        Args:
            original_records: Rows as the pipeline produced them
            corrected_records: The same rows after review
            supplier: Supplier the document came from
            document_type: Detected document type

        Returns:
            False if the correction was rejected or could not be saved

        """
        try:
            original = records_to_payload(_as_records(original_records))
            corrected = records_to_payload(_as_records(corrected_records))
            applied = await self.memory_store.learn_from_correction(
                supplier, document_type, original, corrected
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Correction rejected for {supplier!r}: {e}")
            return False
        except MemoryStoreError as e:
            logger.error(f"Failed to save correction for {supplier}: {e}")
            return False
        if not applied:
            logger.info(f"No learned format for {supplier!r}, correction not recorded")
        return True

    def get_learned_formats(self) -> list[DocumentFormat]:
        """Every format learned so far, most used first."""
        return sorted(
            self.memory_store.get_all(),
            key=lambda fmt: fmt.accuracy.extraction_count,
            reverse=True,
        )

    async def reset_memory(self) -> bool:
        """Forget all learned formats.

        Returns:
            True if the empty memory was saved

        """
        try:
            await self.memory_store.clear()
        except MemoryStoreError as e:
            logger.error(f"Failed to reset document memory: {e}")
            return False
        return True


def _as_records(rows: RecordsLike) -> list[CanonicalRecord]:
    return [
        row if isinstance(row, CanonicalRecord) else CanonicalRecord.from_dict(dict(row))
        for row in rows
    ]
