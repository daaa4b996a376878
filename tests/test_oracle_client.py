"""Tests for the VisionOracleClient retry loop and error classification."""

import asyncio
import random

import openai
import pytest

from conftest import FakeChatModel, NoSleep, make_client, openai_request, openai_response
from docket_reader.constants import IMAGE_TOO_LARGE_MESSAGE, ORACLE_ERROR_MESSAGES
from docket_reader.exceptions import ConfigurationError, OracleError, OracleErrorKind
from docket_reader.services.oracle_client import (
    RetryPolicy,
    classify_error,
    compute_backoff,
    encode_image,
)

IMAGE = b"\xff\xd8\xff fake jpeg"


def rate_limit_error():
    return openai.RateLimitError("Rate limit reached", response=openai_response(429), body=None)


def server_error():
    return openai.InternalServerError("Bad gateway", response=openai_response(502), body=None)


def auth_error():
    return openai.AuthenticationError("Invalid API key", response=openai_response(401), body=None)


class SlowModel:
    async def ainvoke(self, messages, **kwargs):
        await asyncio.sleep(5)


class TestClassifyError:
    """Test suite for classify_error."""

    def test_timeouts(self):
        assert classify_error(asyncio.TimeoutError()) == OracleErrorKind.TIMEOUT
        assert (
            classify_error(openai.APITimeoutError(request=openai_request()))
            == OracleErrorKind.TIMEOUT
        )

    def test_rate_limited(self):
        assert classify_error(rate_limit_error()) == OracleErrorKind.RATE_LIMITED

    def test_server_and_gateway_errors(self):
        assert classify_error(server_error()) == OracleErrorKind.SERVER_ERROR
        assert (
            classify_error(openai.APIConnectionError(request=openai_request()))
            == OracleErrorKind.SERVER_ERROR
        )

    def test_auth_failure(self):
        assert classify_error(auth_error()) == OracleErrorKind.AUTH_FAILURE

    def test_client_error(self):
        error = openai.BadRequestError("Invalid request", response=openai_response(400), body=None)
        assert classify_error(error) == OracleErrorKind.CLIENT_ERROR

    def test_status_code_mapping(self):
        gateway_timeout = openai.APIStatusError(
            "Gateway timeout", response=openai_response(504), body=None
        )
        assert classify_error(gateway_timeout) == OracleErrorKind.TIMEOUT

    def test_anything_else_is_unknown(self):
        assert classify_error(ValueError("boom")) == OracleErrorKind.UNKNOWN


class TestComputeBackoff:
    """Test suite for the backoff calculation."""

    @pytest.fixture
    def policy(self):
        return RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=0.0, rate_limit_delay=5.0)

    def test_doubles_per_attempt(self, policy):
        delays = [compute_backoff(n, OracleErrorKind.SERVER_ERROR, policy) for n in (1, 2, 3)]
        assert delays == [1.0, 2.0, 4.0]

    def test_capped_at_max_delay(self, policy):
        assert compute_backoff(10, OracleErrorKind.TIMEOUT, policy) == 10.0

    def test_rate_limit_waits_longer(self, policy):
        """Test rate limiting waits at least rate_limit_delay per attempt."""
        assert compute_backoff(1, OracleErrorKind.RATE_LIMITED, policy) == 5.0
        assert compute_backoff(2, OracleErrorKind.RATE_LIMITED, policy) == 10.0

    def test_jitter_is_bounded(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=1.0)
        rng = random.Random(42)
        for _ in range(50):
            delay = compute_backoff(2, OracleErrorKind.TIMEOUT, policy, rng)
            assert 2.0 <= delay <= 3.0


class TestRetryPolicy:
    """Test suite for RetryPolicy.from_config."""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DOCKET_READER_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("DOCKET_READER_TIMEOUT", "12.5")

        policy = RetryPolicy.from_config()

        assert policy.max_attempts == 5
        assert policy.request_timeout == 12.5

    @pytest.mark.parametrize(
        "name, value",
        [
            ("DOCKET_READER_MAX_ATTEMPTS", "three"),
            ("DOCKET_READER_MAX_ATTEMPTS", "0"),
            ("DOCKET_READER_TIMEOUT", "soon"),
        ],
    )
    def test_bad_override_is_a_configuration_error(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError, match=name):
            RetryPolicy.from_config()


class TestVisionOracleClient:
    """Test suite for VisionOracleClient.call."""

    @pytest.mark.asyncio
    async def test_success_sends_prompt_and_image(self):
        model = FakeChatModel('{"items": []}')
        client = make_client(model)

        text, attempts = await client.call_with_attempts(IMAGE, "Read this", max_tokens=200)

        assert text == '{"items": []}'
        assert attempts == 1
        content = model.calls[0]["messages"][0].content
        assert content[0] == {"type": "text", "text": "Read this"}
        assert content[1]["image_url"]["url"] == encode_image(IMAGE, "image/jpeg")
        assert model.calls[0]["kwargs"] == {"max_tokens": 200}

    @pytest.mark.asyncio
    async def test_retries_transient_failure_then_succeeds(self):
        sleep = NoSleep()
        model = FakeChatModel(server_error(), "ok")
        client = make_client(model, sleep=sleep)

        assert await client.call(IMAGE, "prompt") == "ok"
        assert len(model.calls) == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_rate_limited_until_exhausted(self):
        """Test exactly max_attempts calls are made and the message is specific."""
        sleep = NoSleep()
        model = FakeChatModel(rate_limit_error())
        client = make_client(model, max_attempts=3, sleep=sleep)

        with pytest.raises(OracleError) as exc_info:
            await client.call(IMAGE, "prompt")

        assert len(model.calls) == 3
        assert exc_info.value.kind == OracleErrorKind.RATE_LIMITED
        assert exc_info.value.attempts == 3
        assert exc_info.value.message == ORACLE_ERROR_MESSAGES["rate_limited"]
        assert sleep.delays == [5.0, 10.0]

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_retried(self):
        model = FakeChatModel(auth_error())
        client = make_client(model)

        with pytest.raises(OracleError) as exc_info:
            await client.call(IMAGE, "prompt")

        assert len(model.calls) == 1
        assert exc_info.value.kind == OracleErrorKind.AUTH_FAILURE

    @pytest.mark.asyncio
    async def test_image_too_large_message(self):
        too_large = openai.APIStatusError(
            "Request entity too large", response=openai_response(413), body=None
        )
        client = make_client(FakeChatModel(too_large))

        with pytest.raises(OracleError) as exc_info:
            await client.call(IMAGE, "prompt")

        assert exc_info.value.kind == OracleErrorKind.CLIENT_ERROR
        assert exc_info.value.message == IMAGE_TOO_LARGE_MESSAGE

    @pytest.mark.asyncio
    async def test_deadline_yields_timeout(self):
        """Test a hung request becomes a classified timeout and is retried."""
        sleep = NoSleep()
        client = make_client(SlowModel(), max_attempts=2, sleep=sleep)
        client.policy = RetryPolicy(
            max_attempts=2, base_delay=1.0, jitter=0.0, request_timeout=0.01
        )

        with pytest.raises(OracleError) as exc_info:
            await client.call(IMAGE, "prompt")

        assert exc_info.value.kind == OracleErrorKind.TIMEOUT
        assert exc_info.value.attempts == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        client = make_client(None)

        with pytest.raises(OracleError) as exc_info:
            await client.call(IMAGE, "prompt")

        assert exc_info.value.kind == OracleErrorKind.AUTH_FAILURE

    @pytest.mark.asyncio
    async def test_unexpected_error_is_not_retried(self):
        sleep = NoSleep()
        model = FakeChatModel(ValueError("unexpected payload"))
        client = make_client(model, sleep=sleep)

        with pytest.raises(OracleError) as exc_info:
            await client.call(IMAGE, "prompt")

        assert len(model.calls) == 1
        assert exc_info.value.kind == OracleErrorKind.UNKNOWN
        assert exc_info.value.attempts == 1
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_backoff_uses_failure_kind_of_each_attempt(self):
        """Test each wait is computed from the error that attempt raised."""
        sleep = NoSleep()
        model = FakeChatModel(server_error(), rate_limit_error(), "ok")
        client = make_client(model, sleep=sleep)

        text, attempts = await client.call_with_attempts(IMAGE, "prompt")

        assert text == "ok"
        assert attempts == 3
        assert sleep.delays == [1.0, 10.0]
