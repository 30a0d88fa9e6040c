from unittest.mock import MagicMock, patch

import pytest
from ebooklib import ITEM_DOCUMENT

from cognify.errors import ExtractionFailedError
from cognify.features.extract import extract_file, extract_text


def test_extract_plain_text():
    data = "  Chapter 1\nMitochondria are the powerhouse of the cell.\n".encode()
    assert extract_text("notes.txt", data) == (
        "Chapter 1\nMitochondria are the powerhouse of the cell."
    )


def test_extract_markdown_with_invalid_bytes():
    text = extract_text("NOTES.MD", b"# Title\n\xff body")
    assert text.startswith("# Title")
    assert "body" in text


@patch("cognify.features.extract.PdfReader")
def test_extract_pdf_joins_pages(mock_reader_class):
    pages = [MagicMock(), MagicMock(), MagicMock()]
    pages[0].extract_text.return_value = "Page one"
    pages[1].extract_text.return_value = None
    pages[2].extract_text.return_value = "Page three"
    mock_reader_class.return_value.pages = pages

    assert extract_text("book.pdf", b"%PDF-fake") == "Page one\n\nPage three"


@patch("cognify.features.extract.PdfReader", side_effect=ValueError("bad xref"))
def test_broken_pdf_raises(mock_reader_class):
    with pytest.raises(ExtractionFailedError) as exc_info:
        extract_text("book.pdf", b"garbage")
    assert exc_info.value.code == "extraction_failed"


@patch("cognify.features.extract.epub.read_epub")
def test_extract_epub_strips_html(mock_read_epub):
    item = MagicMock()
    item.get_type.return_value = ITEM_DOCUMENT
    item.get_content.return_value = b"<html><body><h1>Cells</h1><p>Tiny.</p></body></html>"
    mock_read_epub.return_value.get_items.return_value = [item]

    text = extract_text("book.epub", b"PK...")

    assert "Cells" in text
    assert "Tiny." in text
    assert "<p>" not in text


@pytest.mark.parametrize("file_name", ["image.png", "archive", ""])
def test_unsupported_format(file_name):
    with pytest.raises(ExtractionFailedError):
        extract_text(file_name, b"data")


def test_empty_document_raises():
    with pytest.raises(ExtractionFailedError):
        extract_text("empty.txt", b"   \n  ")


def test_extract_file(tmp_path):
    path = tmp_path / "lesson.txt"
    path.write_text("Lesson text", encoding="utf-8")

    assert extract_file(path) == "Lesson text"
    with pytest.raises(ExtractionFailedError):
        extract_file(tmp_path / "missing.txt")
