import os

import pytest
from docx import Document
from pypdf.errors import PdfReadError

from upsc_digest.core.errors import (
    ExtractionError,
    FileTooLargeError,
    ScannedDocumentError,
    TooManyPagesError,
    UnsupportedFileTypeError,
)
from upsc_digest.services import extract_service
from upsc_digest.services.extract_service import (
    detect_file_type,
    extract_docx_pages,
    extract_pages,
    extract_pdf_pages,
    split_pages,
    stored_upload,
    validate_upload_size,
)


class _FakePage:
    def __init__(self, text):
        self._text = text

    def extract_text(self):
        return self._text


class _FakeReader:
    texts: list = []
    encrypted = False

    def __init__(self, path):
        self.pages = [_FakePage(t) for t in self.texts]
        self.is_encrypted = self.encrypted

    def decrypt(self, password):
        return 0


def _reader(texts, encrypted=False):
    return type("Reader", (_FakeReader,), {"texts": texts, "encrypted": encrypted})


LONG = "The Supreme Court delivered a judgment on electoral bonds and transparency. " * 5


@pytest.mark.parametrize(
    "name,expected",
    [("paper.pdf", "pdf"), ("PAPER.PDF", "pdf"), ("notes.docx", "docx")],
)
def test_detect_file_type(name, expected):
    assert detect_file_type(name) == expected


@pytest.mark.parametrize("name", ["paper.txt", "paper.doc", "paper", ""])
def test_detect_file_type_rejects_others(name):
    with pytest.raises(UnsupportedFileTypeError):
        detect_file_type(name)


def test_validate_upload_size_limit():
    validate_upload_size(10 * 1024 * 1024)
    with pytest.raises(FileTooLargeError) as exc:
        validate_upload_size(10 * 1024 * 1024 + 1)
    assert exc.value.code == "FILE_TOO_LARGE"
    assert "10 MB" in exc.value.user_message


def test_stored_upload_is_removed_even_on_error(tmp_path):
    seen = {}
    with pytest.raises(RuntimeError):
        with stored_upload(b"data", "pdf", data_dir=str(tmp_path)) as path:
            seen["path"] = path
            assert os.path.exists(path)
            raise RuntimeError("boom")
    assert not os.path.exists(seen["path"])


def test_split_pages_numbers_and_drops_blank():
    pages = split_pages("first\fsecond\f  \ffourth")
    assert [(p.page, p.text) for p in pages] == [(1, "first"), (2, "second"), (4, "fourth")]
    assert [p.page for p in split_pages("only one")] == [1]
    assert split_pages("   ") == []


def test_pdf_pages_extracted(monkeypatch):
    monkeypatch.setattr(extract_service, "PdfReader", _reader([LONG, "", LONG]))
    pages = extract_pdf_pages("x.pdf")
    assert [p.page for p in pages] == [1, 3]


def test_pdf_too_many_pages(monkeypatch):
    monkeypatch.setattr(extract_service, "PdfReader", _reader([LONG] * 13))
    with pytest.raises(TooManyPagesError) as exc:
        extract_pdf_pages("x.pdf")
    assert "13 pages" in exc.value.user_message
    assert exc.value.code == "TOO_MANY_PAGES"


def test_pdf_at_page_limit_is_accepted(monkeypatch):
    monkeypatch.setattr(extract_service, "PdfReader", _reader([LONG] * 12))
    assert len(extract_pdf_pages("x.pdf")) == 12


def test_pdf_scanned(monkeypatch):
    monkeypatch.setattr(extract_service, "PdfReader", _reader(["", "12", ""]))
    with pytest.raises(ScannedDocumentError) as exc:
        extract_pdf_pages("x.pdf")
    assert exc.value.code == "IMAGE_BASED_DOCUMENT"


def test_pdf_encrypted(monkeypatch):
    monkeypatch.setattr(extract_service, "PdfReader", _reader([LONG], encrypted=True))
    with pytest.raises(ExtractionError):
        extract_pdf_pages("x.pdf")


def test_pdf_corrupt(monkeypatch):
    def broken(path):
        raise PdfReadError("EOF marker not found")

    monkeypatch.setattr(extract_service, "PdfReader", broken)
    with pytest.raises(ExtractionError) as exc:
        extract_pdf_pages("x.pdf")
    assert exc.value.code == "UNREADABLE_DOCUMENT"


def test_docx_is_single_page(tmp_path):
    path = tmp_path / "paper.docx"
    d = Document()
    d.add_paragraph(LONG)
    d.add_paragraph("")
    d.add_paragraph(LONG)
    d.save(str(path))

    pages = extract_pages(str(path), "docx")
    assert len(pages) == 1
    assert pages[0].page == 1
    assert pages[0].text.count("Supreme Court") == 10


def test_docx_without_text(tmp_path):
    path = tmp_path / "empty.docx"
    Document().save(str(path))
    with pytest.raises(ScannedDocumentError):
        extract_docx_pages(str(path))


def test_docx_corrupt(tmp_path):
    path = tmp_path / "broken.docx"
    path.write_bytes(b"not a zip file")
    with pytest.raises(ExtractionError):
        extract_docx_pages(str(path))


def test_docx_table_text_is_kept_in_order(tmp_path):
    path = tmp_path / "tables.docx"
    d = Document()
    d.add_paragraph(LONG)
    table = d.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Scheme"
    table.cell(0, 1).text = "Outlay"
    table.cell(1, 0).text = "PM-KUSUM"
    table.cell(1, 1).text = "Rs 34,422 crore"
    d.add_paragraph("Closing paragraph after the table.")
    d.save(str(path))

    text = extract_docx_pages(str(path))[0].text
    assert "Scheme | Outlay" in text
    assert "PM-KUSUM | Rs 34,422 crore" in text
    assert text.index("PM-KUSUM") < text.index("Closing paragraph")
    assert text.index("Supreme Court") < text.index("Scheme")
