import logging

from ...exceptions import NoDataError, ParseError
from ...processing.normalizer import normalize_response
from ...utils.error_handling import create_error_response
from ..state import ExtractionState

logger = logging.getLogger(__name__)


def build_records(state: ExtractionState) -> dict:
    """Normalize the raw response into canonical records."""
    if state.get("error"):
        return {}

    try:
        extraction, records = normalize_response(state.get("raw_response"))
    except (ParseError, NoDataError) as e:
        logger.warning(f"No usable data in {state.get('image_name')}: {e}")
        return create_error_response(e)

    logger.info(f"Extracted {len(records)} records from {state.get('image_name')}")
    return {"extraction": extraction, "records": records}
