import logging

from ...exceptions import OracleError
from ...services.prompt_composer import build_extraction_prompt
from ...utils.error_handling import create_error_response
from ..state import ExtractionState

logger = logging.getLogger(__name__)


async def extract_document(state: ExtractionState) -> dict:
    """Run the full extraction call, enriched with any learned format."""
    if state.get("error"):
        return {}

    client = state["oracle_client"]
    prompt = build_extraction_prompt(state.get("document_format"))

    try:
        raw_response, attempts = await client.call_with_attempts(
            state["image_bytes"], prompt
        )
    except OracleError as e:
        logger.error(f"Extraction failed for {state.get('image_name')}: {e.message}")
        response = create_error_response(e)
        response["oracle_attempts"] = e.attempts
        return response

    return {
        "raw_response": raw_response,
        "oracle_attempts": attempts,
    }
