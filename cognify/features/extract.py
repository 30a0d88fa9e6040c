"""Plain-text extraction for uploaded study documents.

Supported formats: PDF (pypdf), EPUB (ebooklib + BeautifulSoup) and plain
text. Every failure surfaces as ``ExtractionFailedError``.
"""

import os
import tempfile
from io import BytesIO
from pathlib import Path

from bs4 import BeautifulSoup
from ebooklib import ITEM_DOCUMENT, epub
from pypdf import PdfReader

from cognify.errors import ExtractionFailedError
from cognify.util.logs import get_logger

logger = get_logger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".text"}


def _load_pdf(data: bytes) -> str:
    reader = PdfReader(BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _load_epub(data: bytes) -> str:
    # ebooklib reads from a path, so spill the upload to a temporary file
    fd, tmp_name = tempfile.mkstemp(suffix=".epub")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        book = epub.read_epub(tmp_name)
        all_text = []
        for item in book.get_items():
            if item.get_type() == ITEM_DOCUMENT:
                soup = BeautifulSoup(item.get_content(), "html.parser")
                all_text.append(soup.get_text())
        return "\n\n".join(all_text)
    finally:
        os.unlink(tmp_name)


def _load_txt(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def extract_text(file_name: str, data: bytes) -> str:
    """Return the plain text of an uploaded document.

    Args:
        file_name: Original file name; its extension selects the format.
        data: Raw file bytes.

    Returns:
        The extracted text, stripped of surrounding whitespace.

    Raises:
        ExtractionFailedError: If the format is unsupported, the file cannot
            be parsed, or it holds no text.
    """
    extension = Path(file_name or "").suffix.lower()
    if extension == ".pdf":
        loader = _load_pdf
    elif extension == ".epub":
        loader = _load_epub
    elif extension in TEXT_SUFFIXES:
        loader = _load_txt
    else:
        raise ExtractionFailedError(f"Unsupported file format: {extension or '?'}")

    try:
        text = loader(data)
    except Exception as e:
        logger.warning(f"Extraction of {file_name!r} failed: {e}")
        raise ExtractionFailedError(f"Cannot read {file_name}: {e}") from e

    text = text.strip()
    if not text:
        raise ExtractionFailedError(f"No readable text in {file_name}")

    logger.info(f"Extracted {len(text)} characters from {file_name!r}")
    return text


def extract_file(file_path: str | Path) -> str:
    """Read ``file_path`` from disk and extract its text."""
    path = Path(file_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ExtractionFailedError(f"Cannot open {path}: {e}") from e
    return extract_text(path.name, data)
