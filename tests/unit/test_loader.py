"""Unit tests for text extraction from uploaded files."""

from __future__ import annotations

import pytest

from docchat.errors import ValidationError
from docchat.ingestion.loader import clean_extracted_text, detect_kind, extract_text


class TestDetectKind:
    @pytest.mark.parametrize(
        ("file_name", "content_type", "kind"),
        [
            ("report.pdf", None, "pdf"),
            ("upload", "application/pdf", "pdf"),
            ("memo.docx", "application/octet-stream", "docx"),
            ("notes.txt", None, "text"),
            ("readme", "text/markdown", "text"),
        ],
    )
    def test_known_kinds(self, file_name: str, content_type: str | None, kind: str) -> None:
        assert detect_kind(file_name, content_type) == kind

    def test_unsupported_type(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported file type"):
            detect_kind("photo.png", "image/png")


class TestExtractText:
    def test_plain_text(self) -> None:
        result = extract_text("notes.txt", b"Hello there.\r\n\r\n\r\nThis is plain text.", "text/plain")
        assert result.text == "Hello there.\n\nThis is plain text."
        assert result.file_name == "notes.txt"
        assert result.pages is None

    def test_empty_upload_rejected(self) -> None:
        with pytest.raises(ValidationError, match="No file provided"):
            extract_text("notes.txt", b"")

    def test_nearly_empty_text_rejected(self) -> None:
        with pytest.raises(ValidationError, match="appears to be empty"):
            extract_text("notes.txt", b"  hi  ")

    def test_garbage_pdf_is_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            extract_text("broken.pdf", b"this is not a pdf at all")


def test_clean_extracted_text_collapses_blank_lines() -> None:
    assert clean_extracted_text("a\r\n\r\n\n  \nb\rc") == "a\n\nb\nc"
