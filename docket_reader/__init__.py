"""Docket Reader - adaptive line-item extraction from photos of commercial documents."""

from .config import MEMORY_CONFIG, MODEL_CONFIG, RETRY_CONFIG
from .exceptions import (
    DocketReaderError,
    InputValidationError,
    MemoryStoreError,
    NoDataError,
    OracleError,
    OracleErrorKind,
    ParseError,
)

__version__ = "0.1.0"
__all__ = [
    "MEMORY_CONFIG",
    "MODEL_CONFIG",
    "RETRY_CONFIG",
    "DocketReaderError",
    "InputValidationError",
    "MemoryStoreError",
    "NoDataError",
    "OracleError",
    "OracleErrorKind",
    "ParseError",
]
