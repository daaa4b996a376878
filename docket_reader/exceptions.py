"""Custom exceptions for Docket Reader."""

from enum import Enum

from .constants import NO_DATA_MESSAGE, ORACLE_ERROR_MESSAGES, PARSE_ERROR_MESSAGE


class OracleErrorKind(str, Enum):
    """Failure classes for calls to the vision extraction service."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    AUTH_FAILURE = "auth_failure"
    CLIENT_ERROR = "client_error"
    UNKNOWN = "unknown"

    @property
    def is_retriable(self) -> bool:
        """Whether a failure of this kind is worth another attempt."""
        return self in (
            OracleErrorKind.TIMEOUT,
            OracleErrorKind.RATE_LIMITED,
            OracleErrorKind.SERVER_ERROR,
        )

    @property
    def user_message(self) -> str:
        """Plain-language message shown when this failure is final."""
        return ORACLE_ERROR_MESSAGES[self.value]


class DocketReaderError(Exception):
    """Base exception for Docket Reader."""

    pass


class OracleError(DocketReaderError):
    """Raised when the vision extraction service fails for good."""

    def __init__(
        self,
        kind: OracleErrorKind,
        message: str | None = None,
        attempts: int = 0,
    ) -> None:
        self.kind = kind
        self.message = message or kind.user_message
        self.attempts = attempts
        super().__init__(self.message)


class ParseError(DocketReaderError):
    """Raised when the extraction response is not a readable JSON object."""

    def __init__(self, message: str = PARSE_ERROR_MESSAGE) -> None:
        super().__init__(message)


class NoDataError(DocketReaderError):
    """Raised when a response holds no usable line items."""

    def __init__(self, message: str = NO_DATA_MESSAGE) -> None:
        super().__init__(message)


class InputValidationError(DocketReaderError):
    """Raised when an image is rejected before any network call."""

    pass


class MemoryStoreError(DocketReaderError):
    """Raised when the format memory cannot be persisted."""

    pass


class ConfigurationError(DocketReaderError):
    """Raised when an environment setting cannot be used."""

    pass
