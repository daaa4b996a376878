import logging
from typing import Any, cast

from langgraph.graph import StateGraph
from langgraph.graph.state import CompiledStateGraph

from ..utils.error_handling import check_state_for_errors
from .nodes.extractor import extract_document
from .nodes.format_learner import learn_format
from .nodes.format_lookup import lookup_format
from .nodes.image_loader import validate_image
from .nodes.record_builder import build_records
from .nodes.supplier_detector import detect_supplier
from .state import ExtractionState

logger = logging.getLogger(__name__)

_compiled_workflow: CompiledStateGraph | None = None


def _continue_or_end(next_node: str):
    def route(state: ExtractionState) -> str:
        if check_state_for_errors(state):
            logger.debug(
                f"Stopping workflow for {state.get('image_name')}: {state.get('error_kind')}"
            )
            return "end"
        return next_node

    return route


def get_compiled_workflow() -> CompiledStateGraph:
    """Get or create the compiled extraction workflow.

    Steps run strictly in order: validate, detect supplier, look up the
    learned format, extract, build records, learn. Any step that records an
    error ends the run.

    Returns:
        Compiled LangGraph workflow

    """
    global _compiled_workflow
    if _compiled_workflow is not None:
        return _compiled_workflow

    workflow = StateGraph(ExtractionState)

    workflow.add_node("validate_image", validate_image)
    workflow.add_node("detect_supplier", detect_supplier)
    workflow.add_node("lookup_format", lookup_format)
    workflow.add_node("extract", extract_document)
    workflow.add_node("build_records", build_records)
    workflow.add_node("learn_format", learn_format)

    workflow.add_conditional_edges(
        "validate_image",
        _continue_or_end("detect_supplier"),
        {"detect_supplier": "detect_supplier", "end": "__end__"},
    )
    # Detection failures are recorded as classification_error, never as error
    workflow.add_edge("detect_supplier", "lookup_format")
    workflow.add_edge("lookup_format", "extract")
    workflow.add_conditional_edges(
        "extract",
        _continue_or_end("build_records"),
        {"build_records": "build_records", "end": "__end__"},
    )
    workflow.add_conditional_edges(
        "build_records",
        _continue_or_end("learn_format"),
        {"learn_format": "learn_format", "end": "__end__"},
    )

    workflow.set_entry_point("validate_image")
    workflow.set_finish_point("learn_format")

    _compiled_workflow = workflow.compile()
    return _compiled_workflow


def create_initial_state(
    image_bytes: bytes,
    image_name: str,
    memory_store: Any,
    oracle_client: Any,
) -> ExtractionState:
    """Create initial state for one image extraction.

    Args:
        image_bytes: The document photo
        image_name: Label used in logs and results
        memory_store: FormatMemoryStore shared across extractions
        oracle_client: VisionOracleClient shared across extractions

    Returns:
        Initial extraction state

    """
    return {
        "image_name": image_name,
        "image_bytes": image_bytes,
        "memory_store": memory_store,
        "oracle_client": oracle_client,
        "supplier": None,
        "document_type": None,
        "classification_error": None,
        "document_format": None,
        "raw_response": None,
        "oracle_attempts": 0,
        "extraction": None,
        "records": [],
        "learned": False,
        "learned_format": None,
        "error": None,
        "error_kind": None,
    }


async def run_extraction(
    image_bytes: bytes,
    image_name: str,
    memory_store: Any,
    oracle_client: Any,
) -> ExtractionState:
    """Run a single image through the workflow and return its final state."""
    app = get_compiled_workflow()
    initial_state = create_initial_state(image_bytes, image_name, memory_store, oracle_client)
    result = await app.ainvoke(initial_state)
    return cast(ExtractionState, result)
