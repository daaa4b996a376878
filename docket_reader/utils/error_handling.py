"""Standardized error handling utilities for Docket Reader."""

from typing import Any

from ..exceptions import NoDataError, OracleError, ParseError


def error_kind_for(error: Exception | str) -> str:
    """Name the outcome class for an error raised inside the workflow."""
    if isinstance(error, OracleError):
        return error.kind.value
    if isinstance(error, (NoDataError, ParseError)):
        return "no_data"
    return "unknown"


def create_error_response(
    error: Exception | str,
    kind: str | None = None,
) -> dict[str, Any]:
    """Create a standardized error response for LangGraph nodes.

    Args:
        error: The error that occurred
        kind: Outcome class; derived from the error when omitted

    Returns:
        Dictionary with error information and an empty record set

    """
    error_message = str(error) if isinstance(error, Exception) else error

    return {
        "error": error_message,
        "error_kind": kind or error_kind_for(error),
        "records": [],
    }


def check_state_for_errors(state: dict[str, Any]) -> bool:
    """Check if a state contains errors.

    Args:
        state: The extraction state to check

    Returns:
        True if state contains errors, False otherwise

    """
    return bool(state.get("error"))
