"""Resilient client for the vision extraction model.

One call sends a prompt and one image. Each attempt races an internal
deadline; failures are classified and retried with capped exponential
backoff plus jitter until the attempt budget runs out.
"""

import asyncio
import base64
import logging
import os
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import openai
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from ..config import (
    ENV_API_KEY,
    ENV_MAX_ATTEMPTS,
    ENV_MODEL,
    ENV_TIMEOUT,
    MODEL_CONFIG,
    RETRY_CONFIG,
)
from ..constants import IMAGE_TOO_LARGE_MESSAGE
from ..exceptions import ConfigurationError, OracleError, OracleErrorKind

logger = logging.getLogger(__name__)


class ChatModel(Protocol):
    """Anything that answers a list of messages, like ChatOpenAI."""

    async def ainvoke(self, input: Any, **kwargs: Any) -> Any: ...


@dataclass(frozen=True)
class RetryPolicy:
    """Timeout and retry settings for oracle calls."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 1.0
    rate_limit_delay: float = 5.0
    request_timeout: float = 25.0

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        """Build the policy from RETRY_CONFIG and environment overrides.

        Raises:
            ConfigurationError: If an override is not a positive number

        """
        max_attempts = _env_number(ENV_MAX_ATTEMPTS, int, RETRY_CONFIG["max_attempts"])
        request_timeout = _env_number(ENV_TIMEOUT, float, RETRY_CONFIG["request_timeout"])
        return cls(
            max_attempts=max_attempts,
            base_delay=float(RETRY_CONFIG["base_delay"]),
            max_delay=float(RETRY_CONFIG["max_delay"]),
            jitter=float(RETRY_CONFIG["jitter"]),
            rate_limit_delay=float(RETRY_CONFIG["rate_limit_delay"]),
            request_timeout=request_timeout,
        )


def _env_number(name: str, convert: Callable[[str], Any], default: Any) -> Any:
    raw = os.getenv(name)
    if not raw:
        return convert(default)
    try:
        value = convert(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than zero, got {raw!r}")
    return value


def compute_backoff(
    attempt: int,
    kind: OracleErrorKind,
    policy: RetryPolicy,
    rng: random.Random | None = None,
) -> float:
    """Delay before the next attempt after `attempt` failed with `kind`.

    Exponential from base_delay, capped at max_delay, plus uniform jitter.
    Rate limiting waits at least rate_limit_delay per attempt made.

    Args:
        attempt: 1-based number of the attempt that just failed
        kind: How that attempt failed
        policy: Retry settings
        rng: Random source for jitter

    Returns:
        Seconds to wait

    """
    rng = rng or random
    delay = min(policy.base_delay * (2 ** (attempt - 1)), policy.max_delay)
    delay += rng.uniform(0, policy.jitter)
    if kind == OracleErrorKind.RATE_LIMITED:
        delay = max(delay, policy.rate_limit_delay * attempt)
    return delay


def classify_error(error: BaseException) -> OracleErrorKind:
    """Map an exception from the model call onto an OracleErrorKind."""
    if isinstance(error, (asyncio.TimeoutError, openai.APITimeoutError)):
        return OracleErrorKind.TIMEOUT
    if isinstance(error, openai.RateLimitError):
        return OracleErrorKind.RATE_LIMITED
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return OracleErrorKind.AUTH_FAILURE
    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        if status in (408, 504):
            return OracleErrorKind.TIMEOUT
        if status == 429:
            return OracleErrorKind.RATE_LIMITED
        if status in (401, 403):
            return OracleErrorKind.AUTH_FAILURE
        if status >= 500:
            return OracleErrorKind.SERVER_ERROR
        if 400 <= status < 500:
            return OracleErrorKind.CLIENT_ERROR
        return OracleErrorKind.UNKNOWN
    if isinstance(error, openai.APIConnectionError):
        # Transient gateway or network failure
        return OracleErrorKind.SERVER_ERROR
    return OracleErrorKind.UNKNOWN


def is_image_too_large(error: BaseException) -> bool:
    """Whether a rejected request was rejected for the image's size."""
    if isinstance(error, openai.APIStatusError) and error.status_code == 413:
        return True
    text = str(error).lower()
    return "too large" in text or "image size" in text


def encode_image(image_bytes: bytes, mime_type: str) -> str:
    """Build a data URL for an image."""
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def create_chat_model(max_tokens: int | None = None) -> ChatOpenAI:
    """Create the OpenAI chat model used for extraction.

    The SDK's own retries are disabled; VisionOracleClient owns the policy.

    Raises:
        OracleError: If no API key is configured

    """
    if not os.getenv(ENV_API_KEY):
        raise OracleError(
            OracleErrorKind.AUTH_FAILURE,
            f"{ENV_API_KEY} environment variable not set",
        )
    return ChatOpenAI(
        model=os.getenv(ENV_MODEL) or str(MODEL_CONFIG["extraction_model"]),
        temperature=float(MODEL_CONFIG["temperature"]),
        max_tokens=max_tokens or int(MODEL_CONFIG["max_tokens"]),
        max_retries=0,
        model_kwargs={"response_format": {"type": "json_object"}},
    )


class VisionOracleClient:
    """Sends one prompt and one image to the vision model, with retries."""

    def __init__(
        self,
        model: ChatModel | None = None,
        policy: RetryPolicy | None = None,
        mime_type: str = str(MODEL_CONFIG["image_mime_type"]),
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._model = model
        self.policy = policy or RetryPolicy.from_config()
        self.mime_type = mime_type
        self._sleep = sleep
        self._rng = rng or random.Random()

    def _get_model(self) -> ChatModel:
        if self._model is None:
            self._model = create_chat_model()
        return self._model

    def build_messages(self, image_bytes: bytes, prompt: str) -> list[HumanMessage]:
        return [
            HumanMessage(
                content=[
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": encode_image(image_bytes, self.mime_type)},
                    },
                ]
            )
        ]

    async def call(
        self,
        image_bytes: bytes,
        prompt: str,
        max_tokens: int | None = None,
    ) -> str:
        """Run one oracle call and return only the raw text."""
        text, _ = await self.call_with_attempts(image_bytes, prompt, max_tokens)
        return text

    async def call_with_attempts(
        self,
        image_bytes: bytes,
        prompt: str,
        max_tokens: int | None = None,
    ) -> tuple[str, int]:
        """Run one extraction call and return the model's raw text.

        Args:
            image_bytes: The document photo
            prompt: Instructions for the model
            max_tokens: Output token cap for this call

        Returns:
            Raw response text, expected to hold one JSON object, and the
            number of attempts it took

        Raises:
            OracleError: When the failure is not retriable or attempts run out

        """
        model = self._get_model()
        messages = self.build_messages(image_bytes, prompt)
        call_kwargs = {"max_tokens": max_tokens} if max_tokens else {}

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            retry=retry_if_exception(_is_retriable),
            wait=self._backoff,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        attempts = 0
        try:
            async for attempt in retrying:
                attempts = attempt.retry_state.attempt_number
                with attempt:
                    response = await asyncio.wait_for(
                        model.ainvoke(messages, **call_kwargs),
                        timeout=self.policy.request_timeout,
                    )
        except Exception as e:
            kind = classify_error(e)
            logger.error(
                f"Oracle call failed after {attempts} attempt(s), "
                f"last error {kind.value}: {e}"
            )
            message = None
            if kind == OracleErrorKind.CLIENT_ERROR and is_image_too_large(e):
                message = IMAGE_TOO_LARGE_MESSAGE
            raise OracleError(kind, message, attempts=attempts) from e

        return _response_text(response), attempts

    def _backoff(self, retry_state: RetryCallState) -> float:
        kind = classify_error(retry_state.outcome.exception())
        return compute_backoff(retry_state.attempt_number, kind, self.policy, self._rng)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"Oracle attempt {retry_state.attempt_number}/{self.policy.max_attempts} "
            f"failed ({classify_error(error).value}), "
            f"retrying in {retry_state.next_action.sleep:.1f}s"
        )


def _is_retriable(error: BaseException) -> bool:
    return classify_error(error).is_retriable


def _response_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)
