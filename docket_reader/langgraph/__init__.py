"""LangGraph workflow components for docket extraction."""

from .state import ExtractionState
from .workflow import create_initial_state, get_compiled_workflow, run_extraction

__all__ = [
    "ExtractionState",
    "create_initial_state",
    "get_compiled_workflow",
    "run_extraction",
]
