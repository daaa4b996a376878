"""Tests for the command-line entry point."""

import json

from docket_reader.main import build_parser, main


def write_memory(path):
    path.write_text(
        json.dumps(
            {
                "acme-docket": {
                    "id": "acme-docket",
                    "supplier": "Acme",
                    "documentType": "docket",
                    "accuracy": {"successRate": 90, "extractionCount": 3},
                }
            }
        ),
        encoding="utf-8",
    )


class TestParser:
    """Test suite for argument parsing."""

    def test_extract_arguments(self):
        args = build_parser().parse_args(
            ["--memory", "mem.json", "extract", "a.jpg", "b.jpg", "--csv", "out.csv"]
        )
        assert args.command == "extract"
        assert args.images == ["a.jpg", "b.jpg"]
        assert args.csv == "out.csv"
        assert args.memory == "mem.json"


class TestCommands:
    """Test suite for the administrative commands."""

    def test_formats(self, tmp_path, capsys):
        memory = tmp_path / "memory.json"
        write_memory(memory)

        assert main(["--memory", str(memory), "formats"]) == 0
        assert "acme-docket: 3 extractions, 90% success" in capsys.readouterr().out

    def test_stats(self, tmp_path, capsys):
        memory = tmp_path / "memory.json"
        write_memory(memory)

        assert main(["--memory", str(memory), "stats"]) == 0
        assert "Formats: 1 | Extractions: 3" in capsys.readouterr().out

    def test_reset(self, tmp_path):
        memory = tmp_path / "memory.json"
        write_memory(memory)

        assert main(["--memory", str(memory), "reset"]) == 0
        assert json.loads(memory.read_text(encoding="utf-8")) == {}

    def test_extract_missing_image(self, tmp_path, capsys):
        memory = tmp_path / "memory.json"
        code = main(["--memory", str(memory), "extract", str(tmp_path / "nope.jpg")])

        assert code == 1
        assert "does not exist" in capsys.readouterr().out

    def test_extract_bad_retry_setting(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("DOCKET_READER_MAX_ATTEMPTS", "lots")
        image = tmp_path / "docket.jpg"
        image.write_bytes(b"\xff\xd8\xff fake jpeg")

        code = main(["--memory", str(tmp_path / "memory.json"), "extract", str(image)])

        assert code == 1
        assert "DOCKET_READER_MAX_ATTEMPTS must be a number" in capsys.readouterr().out
