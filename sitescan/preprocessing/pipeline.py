"""Bitmap normalization ahead of recognition.

Decodes an uploaded image (or the first page of a scanned PDF), caps its
longer side, binarizes it on luminance, and re-encodes it losslessly.
"""

import io
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from sitescan.exceptions import DecodeError
from sitescan.ocr.pdf_handler import PDFHandler, is_pdf
from sitescan.utils.config import PreprocessingConfig
from sitescan.utils.logger import get_logger

from .binarize import binarize_fixed

logger = get_logger(__name__)


@dataclass
class PreprocessedImage:
    """The losslessly encoded, normalized page handed on to recognition."""

    encoded: bytes
    size: tuple[int, int]
    original_size: tuple[int, int]

    def to_bitmap(self) -> np.ndarray:
        """Decode the encoded page, keeping its binarized channel layout."""
        with Image.open(io.BytesIO(self.encoded)) as img:
            return np.array(img)


def scaled_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Return the size after capping the longer side at ``max_dimension``.

    The longer side becomes exactly ``max_dimension``; the shorter side is
    scaled by the same factor and rounded, never below one pixel.
    """
    longest = max(width, height)
    if longest <= max_dimension:
        return width, height
    scale = max_dimension / longest
    if width >= height:
        return max_dimension, max(1, round(height * scale))
    return max(1, round(width * scale)), max_dimension


def decode_image(content: bytes) -> np.ndarray:
    """Decode raster bytes into an RGB or RGBA array.

    Raises:
        DecodeError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            has_alpha = "A" in img.getbands() or "transparency" in img.info
            converted = img.convert("RGBA" if has_alpha else "RGB")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Cannot decode image: {exc}") from exc
    return np.array(converted)


class ImagePreprocessor:
    """Normalizes uploaded documents for recognition accuracy.

    Args:
        config: Preprocessing configuration.
    """

    def __init__(self, config: PreprocessingConfig | None = None) -> None:
        self.config = config or PreprocessingConfig()
        self.pdf_handler = PDFHandler(dpi=self.config.pdf_dpi)

    def load(self, content: bytes) -> np.ndarray:
        """Decode upload bytes, rendering the first page of PDFs."""
        if not content:
            raise DecodeError("Empty document")
        if is_pdf(content):
            return self.pdf_handler.render_page(content, page=1)
        return decode_image(content)

    def resize(self, image: np.ndarray) -> np.ndarray:
        height, width = image.shape[:2]
        new_width, new_height = scaled_size(width, height, self.config.max_dimension)
        if (new_width, new_height) == (width, height):
            return image
        logger.debug(
            "Downscaling %dx%d to %dx%d", width, height, new_width, new_height
        )
        return cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)

    def encode(self, image: np.ndarray) -> bytes:
        buf = io.BytesIO()
        Image.fromarray(image).save(buf, format=self.config.output_format)
        return buf.getvalue()

    def process(self, content: bytes) -> PreprocessedImage:
        """Run decode, resize, binarize, and lossless re-encode.

        Args:
            content: Raw uploaded file bytes.

        Returns:
            The losslessly encoded page with its new and original sizes.

        Raises:
            DecodeError: If the input cannot be decoded.
        """
        image = self.load(content)
        if image.size == 0:
            raise DecodeError("Decoded image is empty")

        original_size = (image.shape[1], image.shape[0])
        resized = self.resize(image)
        binary = binarize_fixed(resized, self.config.binarize_threshold)
        encoded = self.encode(binary)

        logger.info(
            "Preprocessing complete: %dx%d -> %dx%d, %d bytes encoded",
            original_size[0],
            original_size[1],
            binary.shape[1],
            binary.shape[0],
            len(encoded),
        )
        return PreprocessedImage(
            encoded=encoded,
            size=(binary.shape[1], binary.shape[0]),
            original_size=original_size,
        )
