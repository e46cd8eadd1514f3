import logging
import os
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from docx import Document as Docx
from docx.table import Table
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from upsc_digest.core.config import settings
from upsc_digest.core.errors import (
    ExtractionError,
    FileTooLargeError,
    ScannedDocumentError,
    TooManyPagesError,
    UnsupportedFileTypeError,
)
from upsc_digest.core.models import FileType, PageText

logger = logging.getLogger(__name__)

PAGE_BREAK = "\f"


def detect_file_type(filename: str) -> FileType:
    suffix = Path(filename or "").suffix.lower()
    if suffix == ".pdf":
        return "pdf"
    if suffix == ".docx":
        return "docx"
    raise UnsupportedFileTypeError(f"unsupported extension {suffix!r} for {filename!r}")


def validate_upload_size(size: int) -> None:
    if size > settings.max_file_size_bytes:
        size_mb = size / (1024 * 1024)
        raise FileTooLargeError(
            f"upload is {size} bytes",
            user_message=(
                f"File too large. Please upload newspapers up to {settings.MAX_FILE_SIZE_MB} MB. "
                f"Your file is {size_mb:.1f} MB."
            ),
        )


@contextmanager
def stored_upload(content: bytes, suffix: str, data_dir: str | None = None) -> Iterator[str]:
    """Write an upload to a temp file for the parsers and always delete it afterwards."""
    data_dir = data_dir or settings.DATA_DIR
    os.makedirs(data_dir, exist_ok=True)
    tmp = os.path.join(data_dir, f"upload_{uuid.uuid4()}.{suffix}")
    with open(tmp, "wb") as f:
        f.write(content)
    try:
        yield tmp
    finally:
        try:
            os.remove(tmp)
            logger.debug("Temp upload %s removed", tmp)
        except FileNotFoundError:
            pass


def split_pages(text: str) -> list[PageText]:
    """Split extractor output on page-break markers; no markers means one page."""
    parts = text.split(PAGE_BREAK)
    if len(parts) == 1:
        return [PageText(page=1, text=text.strip())] if text.strip() else []
    pages = []
    for i, part in enumerate(parts, 1):
        if part.strip():
            pages.append(PageText(page=i, text=part.strip()))
    return pages


def _ensure_text_based(pages: list[PageText], min_chars: int) -> None:
    total = sum(len(p.text) for p in pages)
    if total < min_chars:
        raise ScannedDocumentError(
            f"only {total} characters extracted",
            user_message=(
                f"This document appears to be scanned or image-based (only {total} characters extracted). "
                "Please upload a text-based file for accurate analysis. "
                "If you have a scanned PDF, please use OCR software to convert it first."
            ),
        )


def extract_pdf_pages(path: str, *, max_pages: int | None = None, min_chars: int | None = None) -> list[PageText]:
    max_pages = settings.MAX_PAGES if max_pages is None else max_pages
    min_chars = settings.MIN_EXTRACTED_CHARS if min_chars is None else min_chars
    try:
        reader = PdfReader(path)
        if reader.is_encrypted and not reader.decrypt(""):
            raise ExtractionError(f"{path} is password-protected")
        page_count = len(reader.pages)
        if page_count > max_pages:
            raise TooManyPagesError(
                f"{page_count} pages > {max_pages}",
                user_message=(
                    f"This newspaper has {page_count} pages. Maximum allowed is {max_pages} pages. "
                    f"Please upload the first {max_pages} pages for best results."
                ),
            )
        text = PAGE_BREAK.join((page.extract_text() or "") for page in reader.pages)
    except (PyPdfError, ValueError, KeyError, OSError) as e:
        raise ExtractionError(f"cannot parse PDF {path}: {e}") from e

    pages = split_pages(text)
    logger.info("Extracted %d characters from %d of %d PDF pages", sum(len(p.text) for p in pages), len(pages), page_count)
    _ensure_text_based(pages, min_chars)
    return pages


def _table_lines(table: Table) -> list[str]:
    lines = []
    for row in table.rows:
        cells: list[str] = []
        for cell in row.cells:
            text = " ".join(cell.text.split())
            # merged cells repeat the same text across the span
            if text and (not cells or cells[-1] != text):
                cells.append(text)
        if cells:
            lines.append(" | ".join(cells))
    return lines


def extract_docx_pages(path: str, *, min_chars: int | None = None) -> list[PageText]:
    min_chars = settings.MIN_EXTRACTED_CHARS if min_chars is None else min_chars
    try:
        d = Docx(path)
    except Exception as e:
        # python-docx surfaces corrupt packages as several unrelated exception types
        raise ExtractionError(f"cannot parse DOCX {path}: {e}") from e
    parts = []
    # body order, so table text sits between the paragraphs around it
    for block in d.iter_inner_content():
        if isinstance(block, Table):
            parts.extend(_table_lines(block))
        elif block.text.strip():
            parts.append(block.text)
    text = "\n".join(parts)
    # DOCX has no native page concept
    pages = [PageText(page=1, text=text.strip())] if text.strip() else []
    logger.info("Extracted %d characters from DOCX", len(text))
    _ensure_text_based(pages, min_chars)
    return pages


def extract_pages(path: str, file_type: FileType, *, max_pages: int | None = None, min_chars: int | None = None) -> list[PageText]:
    if file_type == "pdf":
        return extract_pdf_pages(path, max_pages=max_pages, min_chars=min_chars)
    if file_type == "docx":
        return extract_docx_pages(path, min_chars=min_chars)
    raise UnsupportedFileTypeError(f"unsupported file type {file_type!r}")
