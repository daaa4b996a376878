"""Builds the prompts sent to the vision extraction model.

Prompts are rebuilt on every call; nothing is cached between documents.
When a learned DocumentFormat is available its patterns are appended as
guidance, never as hard rules, since a supplier may change its layout.
"""

from typing import Any

from ..constants import ERROR_DESCRIPTIONS
from ..models.format_memory import DocumentFormat
from ..processing.normalizer import parse_quantity

CLASSIFICATION_PROMPT = """Look at this commercial document image and identify only who issued it and what kind of document it is.

Document types:
- "receipt": a point-of-sale or payment receipt
- "invoice": a bill requesting payment, including tax invoices
- "docket": a delivery docket or delivery note signed on receipt of goods
- "purchase_order": an order placed with a supplier

Respond with valid JSON containing exactly these fields:
{
  "supplier": "Company name from the header or letterhead",
  "documentType": "receipt" or "invoice" or "docket" or "purchase_order"
}"""

EXTRACTION_RULES = """You are an expert at reading commercial documents: receipts, invoices, delivery dockets and purchase orders.

**REASONING APPROACH:**
1. **Document Assessment**: Identify the document type and the supplier from the header or letterhead. Note handwritten elements, stamps and corrections.
2. **Structural Analysis**: Map the header, item list and footer. Find where dates, document numbers and signatures sit.
3. **Content Extraction**: Extract header fields, then every item line, then the receiving section.
4. **Quality Assurance**: Check quantities make sense, dates are consistent and item descriptions are complete.

**EXTRACTION RULES:**
- Document type is one of: receipt, invoice, docket, purchase_order.
- Document details: supplier, document type, document/order/invoice number, date, time, received by, signature.
- Item fields: product, quantity, batch code, use-by date, temperature check, product integrity check, weight check, comments.
- Handwritten corrections take priority over printed values.
- Items that are crossed out or struck through must be left out entirely. If a crossed-out item is reported at all, add "(struck out)" to its product text.
- When a product description wraps onto several lines, join the lines into one description.
- Write every date as DD/MM/YYYY.
- Give quantities exactly as printed, including decimals and units (e.g. "5.008 kg").
- Leave a check field as "OK" when the document makes no remark about it.
- Use an empty string for any field that is not present."""

OUTPUT_SCHEMA = """Respond with valid JSON in exactly this structure:
{
  "documentDetails": {
    "supplier": "Company Name",
    "documentType": "receipt" or "invoice" or "docket" or "purchase_order",
    "documentNumber": "Number",
    "orderNumber": "Number",
    "invoiceNumber": "Number",
    "date": "DD/MM/YYYY",
    "time": "HH:MM",
    "receivedBy": "Name",
    "signature": "Name"
  },
  "items": [
    {
      "product": "Description",
      "quantity": "Quantity as printed",
      "batchCode": "Code",
      "useByDate": "DD/MM/YYYY",
      "tempCheck": "OK",
      "productIntegrityCheck": "OK",
      "weightCheck": "OK",
      "comments": "Any comments"
    }
  ]
}
Include every field for every item, even when empty."""


def build_classification_prompt() -> str:
    """Minimal prompt asking only for supplier and document type."""
    return CLASSIFICATION_PROMPT


def build_extraction_prompt(document_format: DocumentFormat | None = None) -> str:
    """Build the full extraction prompt.

    Args:
        document_format: Learned format for the detected supplier, if any

    Returns:
        Prompt text with rules, optional supplier guidance, and output schema

    """
    sections = [EXTRACTION_RULES]
    if document_format is None:
        sections.append(_general_context())
    else:
        sections.append(_supplier_context(document_format))
        learning = _learning_context(document_format.examples.good_extractions)
        if learning:
            sections.append(learning)
    sections.append(OUTPUT_SCHEMA)
    return "\n\n".join(sections)


def describe_error(tag: str) -> str:
    """Human description of a learned error tag."""
    return ERROR_DESCRIPTIONS.get(tag, f"Unknown error: {tag}")


def _general_context() -> str:
    return """**GENERAL EXTRACTION GUIDANCE:**
- Apply standard business document conventions
- Dates are commonly written DD/MM/YYYY or DD-MM-YY
- Extract quantities as precise decimal numbers"""


def _supplier_context(fmt: DocumentFormat) -> str:
    template = fmt.extraction_template
    hints = fmt.extraction_hints
    accuracy = fmt.accuracy

    lines = [
        "**SUPPLIER-SPECIFIC GUIDANCE:**",
        "These patterns were learned from earlier documents from this supplier. "
        "Use them as guidance; this document may differ.",
        f"- Supplier: {fmt.supplier}",
        f"- Document Type: {fmt.document_type.value}",
        f"- Success Rate: {accuracy.success_rate:g}%",
        f"- Previous Extractions: {accuracy.extraction_count}",
        "",
        "**LEARNED PATTERNS:**",
        f"- Date Format: {template.date_format.value}",
        f"- Time Format: {template.time_format.value}",
        f"- Quantity Format: {template.quantity_format.value}",
        f"- Header Location: {template.header_location}",
        f"- Items Section: {template.items_section}",
        "",
        "**EXTRACTION HINTS:**",
        f"- Date Patterns: {', '.join(hints.date_patterns) or 'None observed'}",
        f"- Quantity Patterns: {', '.join(hints.quantity_patterns) or 'None observed'}",
        f"- Item Separators: {', '.join(hints.item_separators)}",
        f"- Signature Location: {hints.signature_location}",
    ]

    if hints.special_instructions:
        lines += ["", "**SPECIAL INSTRUCTIONS:**"]
        lines += [f"- {instruction}" for instruction in hints.special_instructions]

    if accuracy.common_errors:
        lines += ["", "**COMMON ERRORS TO AVOID:**"]
        lines += [f"- {describe_error(tag)}" for tag in accuracy.common_errors]

    common = template.common_fields
    expectations = []
    if common.get("supplier"):
        expectations.append(f'- Supplier: usually "{common["supplier"]}"')
    if common.get("documentNumber"):
        expectations.append(
            f'- Document Number: format similar to "{common["documentNumber"]}"'
        )
    if common.get("signature"):
        expectations.append(f'- Signature: usually "{common["signature"]}"')
    if expectations:
        lines += ["", "**FIELD EXPECTATIONS:**"] + expectations

    return "\n".join(lines)


def _learning_context(good_extractions: list[dict[str, Any]]) -> str:
    if not good_extractions:
        return ""
    recent = good_extractions[-1]
    details = recent.get("documentDetails") or {}
    return "\n".join(
        [
            "**LEARNING FROM PREVIOUS EXTRACTIONS:**",
            f"- Items Found Last Time: {len(recent.get('items') or [])}",
            f"- Last Date Seen: {details.get('date') or 'Not found'}",
            f"- Typical Quantities: {_quantity_summary(good_extractions)}",
            f"- Product Naming: {_product_summary(good_extractions)}",
        ]
    )


def _quantity_summary(extractions: list[dict[str, Any]]) -> str:
    quantities = [
        item.get("quantity")
        for extraction in extractions
        for item in extraction.get("items") or []
        if item.get("quantity") not in (None, "")
    ]
    if not quantities:
        return "No pattern detected"
    has_decimals = any("." in str(q) for q in quantities)
    average = sum(parse_quantity(q) for q in quantities) / len(quantities)
    return f"{'Decimal' if has_decimals else 'Integer'} values, average: {average:.2f}"


def _product_summary(extractions: list[dict[str, Any]]) -> str:
    products = [
        str(item.get("product"))
        for extraction in extractions
        for item in extraction.get("items") or []
        if item.get("product")
    ]
    if not products:
        return "No pattern detected"
    average_length = sum(len(p) for p in products) / len(products)
    has_numbers = any(any(ch.isdigit() for ch in p) for p in products)
    return (
        f"Average length: {average_length:.0f} chars, "
        f"{'includes' if has_numbers else 'no'} numbers"
    )
