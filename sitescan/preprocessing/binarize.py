"""Grayscale conversion and fixed-threshold binarization.

Operates on RGB or RGBA arrays in place of per-pixel canvas loops: the
gray level uses the 0.299/0.587/0.114 luminance weights, and every color
channel is set to 0 or 255 from that level while alpha is left untouched.
"""

import numpy as np

from sitescan.utils.logger import get_logger

logger = get_logger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Compute the luminance of an RGB(A) image.

    Args:
        image: ``(H, W)`` gray, ``(H, W, 3)`` RGB or ``(H, W, 4)`` RGBA array.

    Returns:
        ``(H, W)`` float64 gray levels in the 0-255 range.
    """
    if image.ndim == 2:
        return image.astype(np.float64)
    return image[..., :3].astype(np.float64) @ LUMA_WEIGHTS


def binarize_fixed(image: np.ndarray, threshold: int = 128) -> np.ndarray:
    """Binarize an image with a fixed luminance threshold.

    Pixels strictly brighter than ``threshold`` become white (255), the
    rest black (0). The channel layout of the input is preserved.

    Args:
        image: Gray, RGB, or RGBA image.
        threshold: Gray level separating black from white.

    Returns:
        ``uint8`` array with the same shape as ``image``.
    """
    gray = to_grayscale(image)
    levels = np.where(gray > threshold, 255, 0).astype(np.uint8)

    if image.ndim == 2:
        result = levels
    else:
        result = image.astype(np.uint8, copy=True)
        result[..., :3] = levels[..., np.newaxis]

    logger.debug("Applied fixed binarization (threshold=%d)", threshold)
    return result
