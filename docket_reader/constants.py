"""Constants used throughout Docket Reader."""

# Column order expected by the spreadsheet sink
CANONICAL_COLUMNS = [
    "date",
    "time",
    "supplier",
    "product",
    "qty",
    "orderNumber",
    "invoiceNumber",
    "batchCode",
    "useByDate",
    "tempCheck",
    "productIntegrityCheck",
    "weightCheck",
    "comments",
    "signature",
]

COLUMN_HEADERS = [
    "DATE",
    "TIME",
    "SUPPLIER",
    "PRODUCT",
    "QTY",
    "ORDER NUMBER",
    "INVOICE NUMBER",
    "BATCH CODE",
    "USE BY DATE",
    "TEMP CHECK",
    "PRODUCT INTEGRITY CHECK",
    "WEIGHT CHECK",
    "COMMENTS",
    "SIGNATURE",
]

# Month names recognised by date normalization
MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

# Descriptions rendered in prompts for learned error tags
ERROR_DESCRIPTIONS = {
    "date_extraction_error": "Date format misinterpretation - double-check date patterns",
    "item_count_mismatch": "Missing or extra items - verify item separation logic",
    "quantity_parsing_error": "Quantity decimal/unit errors - check number formatting",
    "supplier_name_error": "Incorrect supplier extraction - verify header analysis",
    "signature_location_error": "Signature not found - check bottom sections carefully",
}

# User-facing oracle failure messages, keyed by OracleErrorKind value
ORACLE_ERROR_MESSAGES = {
    "timeout": (
        "The request timed out. The image may be too large or complex - "
        "please retry with a smaller image."
    ),
    "rate_limited": "Too many requests. Please wait a moment before trying again.",
    "server_error": (
        "The extraction service is temporarily unavailable. "
        "Please try again in a moment."
    ),
    "auth_failure": "Authentication failed. Please check your API key configuration.",
    "client_error": (
        "The extraction request was rejected. Check that the image is a valid "
        "JPEG or PNG photo."
    ),
    "unknown": "An unexpected error occurred while extracting data from the image.",
}

IMAGE_TOO_LARGE_MESSAGE = (
    "The image is too large to process. Please retry with a smaller image."
)
NO_DATA_MESSAGE = "No usable line items were found in the image."
PARSE_ERROR_MESSAGE = "The extraction response could not be read as JSON."

# Seed hints for a newly learned document format
DEFAULT_ITEM_SEPARATORS = ["new line", "dashed line", "blank space"]
DEFAULT_SIGNATURE_LOCATION = "bottom right"
DEFAULT_SPECIAL_INSTRUCTIONS = [
    "Look for handwritten corrections",
    "Ignore crossed-out items",
    "Check for multiple pages",
    "Verify decimal precision for quantities",
]

ITEM_FIELD_DESCRIPTIONS = {
    "product": "product name or description",
    "quantity": "numeric value with optional unit",
    "batchCode": "alphanumeric code",
    "useByDate": "date in various formats",
}
