"""Tests for PDF page rendering."""

from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from sitescan.exceptions import DecodeError
from sitescan.ocr.pdf_handler import PDFHandler, is_pdf


class TestIsPdf:
    def test_signature_detected(self) -> None:
        assert is_pdf(b"%PDF-1.7\n...")

    def test_png_not_pdf(self) -> None:
        assert not is_pdf(b"\x89PNG\r\n\x1a\n")

    def test_empty_not_pdf(self) -> None:
        assert not is_pdf(b"")


class TestPDFHandler:
    """Tests for PDFHandler with pdf2image mocked."""

    @patch("sitescan.ocr.pdf_handler.convert_from_bytes")
    def test_render_first_page(self, mock_convert: MagicMock) -> None:
        mock_convert.return_value = [Image.new("L", (120, 90), color=255)]
        handler = PDFHandler(dpi=150)

        page = handler.render_page(b"%PDF-1.4")

        assert page.shape == (90, 120, 3)
        mock_convert.assert_called_once_with(
            b"%PDF-1.4", dpi=150, first_page=1, last_page=1
        )

    @patch("sitescan.ocr.pdf_handler.convert_from_bytes")
    def test_conversion_failure(self, mock_convert: MagicMock) -> None:
        mock_convert.side_effect = RuntimeError("poppler missing")
        with pytest.raises(DecodeError, match="poppler missing"):
            PDFHandler().render_page(b"%PDF-1.4")

    @patch("sitescan.ocr.pdf_handler.convert_from_bytes")
    def test_missing_page(self, mock_convert: MagicMock) -> None:
        mock_convert.return_value = []
        with pytest.raises(DecodeError, match="no page 3"):
            PDFHandler().render_page(b"%PDF-1.4", page=3)
