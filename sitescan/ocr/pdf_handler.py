"""Rendering of scanned PDF pages into bitmaps for recognition."""

import numpy as np
from pdf2image import convert_from_bytes

from sitescan.exceptions import DecodeError
from sitescan.utils.logger import get_logger

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF"


def is_pdf(content: bytes) -> bool:
    """Return True when the bytes start with the PDF signature."""
    return content[:4] == PDF_MAGIC


class PDFHandler:
    """Converts scanned PDF documents to images.

    Args:
        dpi: Resolution for PDF rendering. Higher values produce
            better OCR results but use more memory.
    """

    def __init__(self, dpi: int = 300) -> None:
        self.dpi = dpi

    def render_page(self, content: bytes, page: int = 1) -> np.ndarray:
        """Render a single PDF page to an RGB numpy array.

        Args:
            content: Raw PDF bytes.
            page: One-based page number.

        Returns:
            The rendered page.

        Raises:
            DecodeError: If the PDF cannot be rendered or has no such page.
        """
        try:
            pil_images = convert_from_bytes(
                content, dpi=self.dpi, first_page=page, last_page=page
            )
        except Exception as exc:
            raise DecodeError(f"PDF conversion failed: {exc}") from exc

        if not pil_images:
            raise DecodeError(f"PDF has no page {page}")

        logger.info("Rendered PDF page %d at %d DPI", page, self.dpi)
        return np.array(pil_images[0].convert("RGB"))
