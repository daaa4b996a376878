"""Tests for CSV export and memory statistics."""

import csv

import pytest

from docket_reader.constants import COLUMN_HEADERS
from docket_reader.models.document import CanonicalRecord
from docket_reader.processing.record_export import export_csv
from docket_reader.utils.statistics import (
    calculate_memory_statistics,
    get_memory_statistics,
)


def read_rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestExportCsv:
    """Test suite for export_csv."""

    def test_writes_header_and_rows(self, tmp_path):
        path = tmp_path / "out" / "records.csv"
        records = [
            CanonicalRecord(date="20/02/2025", supplier="Acme", product="Widget", qty=5.5),
            CanonicalRecord(date="20/02/2025", supplier="Acme", product="Gadget", qty=2),
        ]

        assert export_csv(records, path) == 2

        rows = read_rows(path)
        assert rows[0] == COLUMN_HEADERS
        assert rows[1][:5] == ["20/02/2025", "", "Acme", "Widget", "5.5"]
        assert rows[1][9:12] == ["OK", "OK", "OK"]

    def test_append_writes_header_once(self, tmp_path):
        path = tmp_path / "records.csv"
        export_csv([CanonicalRecord(product="A", qty=1)], path, append=True)
        export_csv([CanonicalRecord(product="B", qty=1)], path, append=True)

        rows = read_rows(path)
        assert len(rows) == 3
        assert [row[3] for row in rows[1:]] == ["A", "B"]


class TestMemoryStatistics:
    """Test suite for memory statistics."""

    def test_empty_store(self, memory_store):
        statistics = get_memory_statistics(memory_store)
        assert statistics.total_formats == 0
        assert statistics.average_success_rate == 0.0

    @pytest.mark.asyncio
    async def test_totals(self, memory_store):
        payload = {
            "documentDetails": {"date": "20-02-25"},
            "items": [{"product": "Widget", "quantity": "2"}],
        }
        corrected = {
            "documentDetails": {"date": "21-02-25"},
            "items": [{"product": "Widget", "quantity": "2"}],
        }
        await memory_store.learn_from_extraction("Acme", "docket", payload)
        await memory_store.learn_from_extraction("Acme", "docket", payload)
        await memory_store.learn_from_extraction("Bolt", "invoice", payload)
        await memory_store.learn_from_correction("Acme", "docket", payload, corrected)

        statistics = calculate_memory_statistics(memory_store.get_all())

        assert statistics.total_formats == 2
        assert statistics.total_extractions == 3
        assert statistics.total_corrections == 1
        assert statistics.average_success_rate == 97.5
        assert statistics.formats[0].id == "acme-docket"
        assert statistics.formats[0].common_errors == ["date_extraction_error"]
        assert "Formats: 2" in statistics.to_display_string()
        assert statistics.to_dict()["formats"][1]["documentType"] == "invoice"
