"""Shared fakes for the extraction tests."""

import json

import httpx
import pytest
from langchain_core.messages import AIMessage

from docket_reader.processing.format_memory_store import (
    FormatMemoryStore,
    InMemoryPersistence,
)
from docket_reader.services.oracle_client import RetryPolicy, VisionOracleClient

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class FakeChatModel:
    """Stands in for ChatOpenAI, replaying scripted responses in order.

    Each script entry is either response text or an exception to raise.
    The last entry repeats once the script runs out.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.calls = []

    async def ainvoke(self, messages, **kwargs):
        self.calls.append({"messages": messages, "kwargs": kwargs})
        index = min(len(self.calls) - 1, len(self.script) - 1)
        outcome = self.script[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return AIMessage(content=outcome)

    def prompts(self):
        return [call["messages"][0].content[0]["text"] for call in self.calls]


class NoSleep:
    """Records requested delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def openai_response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", OPENAI_URL))


def openai_request() -> httpx.Request:
    return httpx.Request("POST", OPENAI_URL)


def make_client(model, max_attempts: int = 3, sleep=None) -> VisionOracleClient:
    policy = RetryPolicy(
        max_attempts=max_attempts,
        base_delay=1.0,
        max_delay=10.0,
        jitter=0.0,
        rate_limit_delay=5.0,
        request_timeout=1.0,
    )
    return VisionOracleClient(model=model, policy=policy, sleep=sleep or NoSleep())


def classification(supplier="Acme", document_type="docket") -> str:
    return json.dumps({"supplier": supplier, "documentType": document_type})


ACME_EXTRACTION = json.dumps(
    {
        "documentDetails": {"supplier": "Acme", "date": "20-02-25"},
        "items": [{"product": "Widget", "quantity": "5.5 kg"}],
    }
)


@pytest.fixture
def persistence():
    return InMemoryPersistence()


@pytest.fixture
def memory_store(persistence):
    return FormatMemoryStore(persistence)


@pytest.fixture
def no_sleep():
    return NoSleep()
