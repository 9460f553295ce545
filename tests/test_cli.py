"""Tests for the command line entry point."""

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from receipt_reform import ExtractionResult, TransportError
from receipt_reform.cli import build_parser, main

CANDIDATE = {
    "merchantName": "Cafe Aurora",
    "date": "2024-03-15",
    "items": [{"description": "Espresso", "quantity": 2, "unitPrice": 3.5, "totalPrice": 7.0}],
    "subtotal": 7.0,
    "tax": 0.7,
    "total": 7.7,
    "currency": "EUR",
    "category": "Dining",
    "confidence": 0.95,
}


@pytest.fixture
def receipt_file(tmp_path: Path) -> Path:
    path = tmp_path / "receipt.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    return path


@pytest.fixture
def mock_extractor_cls() -> Iterator[MagicMock]:
    with patch("receipt_reform.cli.ReceiptExtractor") as extractor_cls:
        extractor_cls.return_value.invoke.return_value = ExtractionResult(candidate=CANDIDATE)
        yield extractor_cls


class TestParser:
    """Tests for argument parsing."""

    def test_extract_arguments(self) -> None:
        """Test the extract subcommand options."""
        args = build_parser().parse_args(
            ["extract", "receipt.jpg", "--json", "--date", "2024-01-02", "--model", "gemini-2.5-pro", "-v"]
        )

        assert args.command == "extract"
        assert args.file == Path("receipt.jpg")
        assert args.json is True
        assert args.date == "2024-01-02"
        assert args.model == "gemini-2.5-pro"
        assert args.verbose is True
        assert args.open_print is False
        assert args.html is None


class TestMain:
    """Tests for main."""

    def test_summary_output(
        self, receipt_file: Path, mock_extractor_cls: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test the default output is a short summary."""
        assert main(["extract", str(receipt_file)]) == 0

        out = capsys.readouterr().out
        assert "Cafe Aurora | 2024-03-15 | INV-20240315" in out
        assert "Total: €7.70 (Verified)" in out
        assert mock_extractor_cls.call_args.kwargs["config"].model == "gemini-2.5-flash"

    def test_json_with_date_edit(
        self, receipt_file: Path, mock_extractor_cls: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test the JSON output carries the corrected date."""
        assert main(["extract", str(receipt_file), "--json", "--date", "2024-03-16"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["date"] == "2024-03-16"
        assert data["merchantName"] == "Cafe Aurora"

    def test_html_output(self, receipt_file: Path, mock_extractor_cls: MagicMock, tmp_path: Path) -> None:
        """Test the print document can be written to a file."""
        out_path = tmp_path / "receipt.html"

        assert main(["extract", str(receipt_file), "--html", str(out_path)]) == 0

        html = out_path.read_text(encoding="utf-8")
        assert "<title>Invoice #INV-20240315</title>" in html
        assert "contenteditable" not in html

    def test_extraction_failure(
        self, receipt_file: Path, mock_extractor_cls: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test a failed extraction exits with an error."""
        mock_extractor_cls.return_value.invoke.side_effect = TransportError("LLM call failed: offline")

        assert main(["extract", str(receipt_file)]) == 1

        assert "LLM call failed: offline" in capsys.readouterr().err

    def test_invalid_upload(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test unsupported files are rejected before extraction."""
        path = tmp_path / "notes.txt"
        path.write_text("hello", encoding="utf-8")

        with patch("receipt_reform.cli.ReceiptExtractor") as extractor_cls:
            assert main(["extract", str(path)]) == 1

        extractor_cls.assert_not_called()
        assert "Unsupported file type" in capsys.readouterr().err

    def test_invalid_date(
        self, receipt_file: Path, mock_extractor_cls: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test an invalid date edit exits with an error."""
        assert main(["extract", str(receipt_file), "--date", "not-a-date"]) == 1

        assert "Not a valid date" in capsys.readouterr().err
