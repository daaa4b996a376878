"""Node for the cheap first call: who issued the document, and what is it."""

import logging

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser
from pydantic import BaseModel, Field, ValidationError

from ...config import MODEL_CONFIG
from ...exceptions import OracleError
from ...models.document_type import DocumentType
from ...services.prompt_composer import build_classification_prompt
from ..state import ExtractionState

logger = logging.getLogger(__name__)


class SupplierDetection(BaseModel):
    """Schema for the supplier detection response."""

    supplier: str = Field(description="Company name from the header or letterhead")
    documentType: str = Field(
        description="One of: receipt, invoice, docket, purchase_order"
    )


async def detect_supplier(state: ExtractionState) -> dict:
    """Detect supplier and document type ahead of the full extraction.

    Failure here never stops the workflow; extraction continues without
    learned format guidance.
    """
    if state.get("error"):
        return {}

    image_name = state.get("image_name", "image")
    client = state["oracle_client"]

    try:
        raw = await client.call(
            state["image_bytes"],
            build_classification_prompt(),
            max_tokens=int(MODEL_CONFIG["classification_max_tokens"]),
        )
        parser = JsonOutputParser(pydantic_object=SupplierDetection)
        detection = SupplierDetection.model_validate(parser.parse(raw))
    except OracleError as e:
        logger.warning(f"Supplier detection failed for {image_name}: {e.message}")
        return _unknown_supplier(e.message)
    except (OutputParserException, ValidationError) as e:
        logger.warning(f"Unreadable supplier detection for {image_name}: {e}")
        return _unknown_supplier("Supplier detection response was not usable")

    supplier = detection.supplier.strip()
    document_type = DocumentType.from_string(detection.documentType)
    if not supplier or document_type is None:
        logger.warning(
            f"Supplier detection incomplete for {image_name}: "
            f"supplier={supplier!r}, documentType={detection.documentType!r}"
        )
        return _unknown_supplier("Supplier or document type not recognised")

    logger.info(f"Detected {document_type.value} from {supplier} in {image_name}")
    return {
        "supplier": supplier,
        "document_type": document_type.value,
        "classification_error": None,
    }


def _unknown_supplier(reason: str) -> dict:
    return {"supplier": None, "document_type": None, "classification_error": reason}
