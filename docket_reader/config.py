"""Configuration settings for Docket Reader."""

import re
from re import Pattern

# Model configuration
MODEL_CONFIG: dict[str, str | float | int] = {
    "extraction_model": "gpt-4o-mini",
    "temperature": 0.1,
    "max_tokens": 2000,
    "classification_max_tokens": 200,
    "image_mime_type": "image/jpeg",
}

# Oracle retry policy. The request timeout stays below the 30s caller deadline
# so a slow call surfaces as a classified timeout instead of being killed.
RETRY_CONFIG: dict[str, float | int] = {
    "max_attempts": 3,
    "base_delay": 1.0,
    "max_delay": 10.0,
    "jitter": 1.0,
    "rate_limit_delay": 5.0,  # per attempt
    "request_timeout": 25.0,
}

# Format memory
MEMORY_CONFIG: dict[str, str | int] = {
    "memory_path": "data/document-memory.json",
    "max_good_extractions": 5,
    "correction_penalty": 5,
    "initial_success_rate": 100,
}

# Input validation
MAX_IMAGE_BYTES = 20 * 1024 * 1024  # 20MB

# Normalization
UNIT_SUFFIX_PATTERN: Pattern = re.compile(
    r"\s*(kg|g|lbs|oz|pcs|pieces|units|each)\s*$", re.IGNORECASE
)
CANCELLATION_MARKERS = ["struck out", "cancelled"]
TWO_DIGIT_YEAR_PIVOT = 50  # "24" -> 2024, "87" -> 1987
DEFAULT_CHECK_STATUS = "OK"

# Environment variable names
ENV_API_KEY = "OPENAI_API_KEY"
ENV_MODEL = "DOCKET_READER_MODEL"
ENV_MEMORY_PATH = "DOCKET_READER_MEMORY_PATH"
ENV_MAX_ATTEMPTS = "DOCKET_READER_MAX_ATTEMPTS"
ENV_TIMEOUT = "DOCKET_READER_TIMEOUT"

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL = "INFO"
