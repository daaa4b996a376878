from ...config import MAX_IMAGE_BYTES
from ...constants import IMAGE_TOO_LARGE_MESSAGE
from ...exceptions import InputValidationError
from ...utils.error_handling import create_error_response
from ..state import ExtractionState


def validate_image(state: ExtractionState) -> dict:
    """Reject missing or oversize images before any network call.

    Args:
        state: Extraction state containing image bytes

    Returns:
        Empty dict when the image is acceptable, otherwise an error response

    """
    try:
        image_bytes = state.get("image_bytes")
        if not image_bytes:
            raise InputValidationError(
                f"No image data provided: {state.get('image_name', 'image')}"
            )

        if len(image_bytes) > MAX_IMAGE_BYTES:
            raise InputValidationError(IMAGE_TOO_LARGE_MESSAGE)

        return {}

    except InputValidationError as e:
        return create_error_response(e, kind="invalid_input")
