import logging

from ..state import ExtractionState

logger = logging.getLogger(__name__)


def lookup_format(state: ExtractionState) -> dict:
    """Fetch the learned format for the detected supplier, if there is one."""
    if state.get("error"):
        return {}

    supplier = state.get("supplier")
    document_type = state.get("document_type")
    if not supplier or not document_type:
        return {"document_format": None}

    document_format = state["memory_store"].get(supplier, document_type)
    if document_format is None:
        logger.info(f"No learned format yet for {supplier} ({document_type})")
    else:
        logger.info(
            f"Using learned format {document_format.id} "
            f"(success rate {document_format.accuracy.success_rate}%, "
            f"{document_format.accuracy.extraction_count} extractions)"
        )
    return {"document_format": document_format}
