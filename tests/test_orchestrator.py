"""End-to-end tests for the extraction workflow and orchestrator."""

import json

import openai
import pytest

from conftest import (
    ACME_EXTRACTION,
    FakeChatModel,
    classification,
    make_client,
    openai_response,
)
from docket_reader.config import MAX_IMAGE_BYTES
from docket_reader.constants import NO_DATA_MESSAGE, ORACLE_ERROR_MESSAGES
from docket_reader.exceptions import MemoryStoreError
from docket_reader.models.document import ExtractionStatus
from docket_reader.processing.orchestrator import ExtractionOrchestrator

IMAGE = b"\xff\xd8\xff fake jpeg"


def rate_limit_error():
    return openai.RateLimitError("Rate limit reached", response=openai_response(429), body=None)


@pytest.fixture
def make_orchestrator(memory_store):
    def _make(*script, max_attempts=3):
        model = FakeChatModel(*script)
        orchestrator = ExtractionOrchestrator(memory_store, make_client(model, max_attempts))
        return orchestrator, model

    return _make


class TestExtract:
    """Test suite for ExtractionOrchestrator.extract."""

    @pytest.mark.asyncio
    async def test_acme_docket_end_to_end(self, make_orchestrator, memory_store):
        """Test the reference docket becomes one record and is learned."""
        orchestrator, model = make_orchestrator(classification(), ACME_EXTRACTION)

        result = await orchestrator.extract(IMAGE, "acme.jpg")

        assert result.status == ExtractionStatus.SUCCESS
        assert len(result.records) == 1
        record = result.records[0]
        assert record.date == "20/02/2025"
        assert record.product == "Widget"
        assert record.qty == 5.5
        assert record.temp_check == "OK"

        assert len(model.calls) == 2
        assert model.calls[0]["kwargs"] == {"max_tokens": 200}

        fmt = memory_store.get("Acme", "docket")
        assert fmt.accuracy.extraction_count == 1
        assert result.diagnostics.learned is True
        assert result.diagnostics.used_memory is False
        assert result.diagnostics.required_fields == "Yes"
        assert result.diagnostics.logical_consistency == "Yes"
        assert result.diagnostics.format_adherence == "No format to compare"

    @pytest.mark.asyncio
    async def test_second_extraction_uses_learned_format(self, make_orchestrator, memory_store):
        orchestrator, model = make_orchestrator(classification(), ACME_EXTRACTION)
        await orchestrator.extract(IMAGE, "first.jpg")

        orchestrator, model = make_orchestrator(classification(), ACME_EXTRACTION)
        result = await orchestrator.extract(IMAGE, "second.jpg")

        assert "SUPPLIER-SPECIFIC GUIDANCE" in model.prompts()[1]
        assert result.diagnostics.used_memory is True
        assert result.diagnostics.extraction_count == 2
        assert result.diagnostics.success_rate == 100
        assert result.diagnostics.format_adherence == "Yes"
        assert memory_store.get("acme", "docket").accuracy.extraction_count == 2

    @pytest.mark.asyncio
    async def test_empty_items_is_no_data(self, make_orchestrator, memory_store):
        """Test an empty item list is a data-quality outcome, not an exception."""
        empty = json.dumps({"documentDetails": {"supplier": "Acme"}, "items": []})
        orchestrator, _ = make_orchestrator(classification(), empty)

        result = await orchestrator.extract(IMAGE, "empty.jpg")

        assert result.status == ExtractionStatus.NO_DATA
        assert result.records == []
        assert result.error == NO_DATA_MESSAGE
        assert memory_store.get("Acme", "docket") is None

    @pytest.mark.asyncio
    async def test_malformed_json_is_no_data(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(classification(), "I could not read this image")
        result = await orchestrator.extract(IMAGE, "blurry.jpg")

        assert result.status == ExtractionStatus.NO_DATA
        assert result.records == []

    @pytest.mark.asyncio
    async def test_classification_failure_degrades_gracefully(
        self, make_orchestrator, memory_store
    ):
        """Test extraction still runs, learning from the extracted details."""
        orchestrator, model = make_orchestrator("not json at all", ACME_EXTRACTION)

        result = await orchestrator.extract(IMAGE, "acme.jpg")

        assert result.status == ExtractionStatus.SUCCESS
        assert result.diagnostics.classification_error is not None
        assert "GENERAL EXTRACTION GUIDANCE" in model.prompts()[1]
        # No document type anywhere, so nothing is learned
        assert result.diagnostics.learned is False
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_unrecognised_document_type_skips_lookup(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            classification(document_type="brochure"), ACME_EXTRACTION
        )
        result = await orchestrator.extract(IMAGE, "acme.jpg")

        assert result.status == ExtractionStatus.SUCCESS
        assert result.diagnostics.classification_error is not None

    @pytest.mark.asyncio
    async def test_rate_limited_on_every_attempt(self, make_orchestrator):
        """Test the rate-limit message surfaces after exactly max attempts."""
        orchestrator, model = make_orchestrator(rate_limit_error(), max_attempts=3)

        result = await orchestrator.extract(IMAGE, "acme.jpg")

        assert result.status == ExtractionStatus.FAILED
        assert result.error == ORACLE_ERROR_MESSAGES["rate_limited"]
        assert result.error_kind == "rate_limited"
        assert result.diagnostics.oracle_attempts == 3
        # Detection and extraction each used the full attempt budget
        assert len(model.calls) == 6

    @pytest.mark.asyncio
    async def test_empty_image_rejected_before_network(self, make_orchestrator):
        orchestrator, model = make_orchestrator(classification(), ACME_EXTRACTION)
        result = await orchestrator.extract(b"", "missing.jpg")

        assert result.status == ExtractionStatus.INVALID_INPUT
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_oversize_image_rejected_before_network(self, make_orchestrator):
        orchestrator, model = make_orchestrator(classification(), ACME_EXTRACTION)
        result = await orchestrator.extract(b"x" * (MAX_IMAGE_BYTES + 1), "huge.jpg")

        assert result.status == ExtractionStatus.INVALID_INPUT
        assert "too large" in result.error
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_learning_failure_keeps_records(self, make_orchestrator, memory_store):
        orchestrator, _ = make_orchestrator(classification(), ACME_EXTRACTION)

        async def failing_learn(*args, **kwargs):
            raise MemoryStoreError("disk full")

        memory_store.learn_from_extraction = failing_learn
        result = await orchestrator.extract(IMAGE, "acme.jpg")

        assert result.status == ExtractionStatus.SUCCESS
        assert len(result.records) == 1
        assert result.diagnostics.learned is False


class TestExtractMany:
    """Test suite for concurrent batch extraction."""

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(classification(), ACME_EXTRACTION)
        progress = []

        results = await orchestrator.extract_many(
            [("a.jpg", IMAGE), ("empty.jpg", b""), ("b.jpg", IMAGE)],
            progress_callback=lambda done, total, result: progress.append((done, total)),
        )

        assert [r.image_name for r in results] == ["a.jpg", "empty.jpg", "b.jpg"]
        assert [r.status for r in results] == [
            ExtractionStatus.SUCCESS,
            ExtractionStatus.INVALID_INPUT,
            ExtractionStatus.SUCCESS,
        ]
        assert sorted(progress) == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failed_result(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(classification(), ACME_EXTRACTION)

        async def broken_extract(image_bytes, image_name="image"):
            raise RuntimeError("boom")

        orchestrator.extract = broken_extract
        results = await orchestrator.extract_many([("a.jpg", IMAGE)])

        assert results[0].status == ExtractionStatus.FAILED
        assert "boom" in results[0].error
