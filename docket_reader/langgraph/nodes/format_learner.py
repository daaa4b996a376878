import logging

from ...exceptions import MemoryStoreError
from ...models.document_type import DocumentType
from ..state import ExtractionState

logger = logging.getLogger(__name__)


async def learn_format(state: ExtractionState) -> dict:
    """Feed a successful extraction back into format memory.

    The detected supplier and type are preferred; when detection failed the
    extracted document details are used instead. Without both, nothing is
    learned. A failed write is logged and does not discard the records.
    """
    if state.get("error") or not state.get("records"):
        return {"learned": False}

    extraction = state["extraction"]
    supplier = state.get("supplier") or extraction.details.supplier
    document_type = DocumentType.from_string(
        state.get("document_type") or extraction.details.document_type
    )
    if not supplier or document_type is None:
        logger.info(
            f"Not learning from {state.get('image_name')}: supplier or document type unknown"
        )
        return {"learned": False}

    try:
        document_format = await state["memory_store"].learn_from_extraction(
            supplier, document_type, extraction
        )
    except MemoryStoreError as e:
        logger.error(f"Could not save learned format for {supplier}: {e}")
        return {"learned": False}

    return {"learned": True, "learned_format": document_format}
