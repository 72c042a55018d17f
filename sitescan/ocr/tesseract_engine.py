"""Tesseract recognition engine with a configure/recognize/dispose lifecycle.

One :class:`TesseractEngine` is the stateful object held by a pooled worker
handle. It keeps its recognition parameters between calls. Crashes and
timeouts become :class:`~sitescan.exceptions.EngineError` (retried);
a missing binary or a disposed engine becomes
:class:`~sitescan.exceptions.EngineUnavailableError` (not retried).
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import numpy as np
import pytesseract
from PIL import Image

from sitescan.exceptions import EngineError, EngineUnavailableError
from sitescan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class BoundingBox:
    """Axis-aligned bounding box for a detected element."""

    x: int
    y: int
    width: int
    height: int


@dataclass
class OCRWord:
    """A single word reported by the engine; confidence is on a 0-100 scale."""

    text: str
    bbox: BoundingBox
    confidence: float


@dataclass
class EngineOutput:
    """Raw recognition output for one bitmap."""

    text: str
    words: list[OCRWord] = field(default_factory=list)


class RecognitionEngine(Protocol):
    """Interface every pooled recognition engine implements."""

    def configure(self, params: dict[str, Any]) -> None: ...

    def recognize(self, bitmap: np.ndarray) -> EngineOutput: ...

    def dispose(self) -> None: ...


class TesseractEngine:
    """Wrapper around Tesseract OCR for construction document text.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        default_lang: Default OCR language code.
        timeout: Seconds before a recognition call is killed (0 disables).
    """

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        default_lang: str = "eng",
        timeout: float = 0,
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.lang = default_lang
        self.timeout = timeout
        self.psm = 3
        self.oem: int | None = None
        self.preserve_interword_spaces = False
        self.disposed = False

    def configure(self, params: dict[str, Any]) -> None:
        """Set recognition parameters kept for subsequent calls.

        Recognized keys are ``psm``, ``oem``, ``lang``, and
        ``preserve_interword_spaces``; unknown keys are ignored.
        """
        self.psm = int(params.get("psm", self.psm))
        self.oem = params.get("oem", self.oem)
        self.lang = params.get("lang", self.lang)
        self.preserve_interword_spaces = bool(
            params.get("preserve_interword_spaces", self.preserve_interword_spaces)
        )

    @property
    def config_string(self) -> str:
        """Tesseract command-line options for the current parameters."""
        parts = [f"--psm {self.psm}"]
        if self.oem is not None:
            parts.append(f"--oem {self.oem}")
        if self.preserve_interword_spaces:
            parts.append("-c preserve_interword_spaces=1")
        return " ".join(parts)

    def recognize(self, bitmap: np.ndarray) -> EngineOutput:
        """Recognize text with word-level bounding boxes.

        Args:
            bitmap: Preprocessed image as a numpy array.

        Returns:
            Full text plus every non-empty word with its box and raw
            0-100 confidence.

        Raises:
            EngineError: If Tesseract crashed or timed out.
            EngineUnavailableError: If the engine was disposed or the
                Tesseract binary is missing.
        """
        if self.disposed:
            raise EngineUnavailableError("Recognition engine has been disposed")

        pil_image = Image.fromarray(bitmap)
        config = self.config_string
        try:
            text = pytesseract.image_to_string(
                pil_image, lang=self.lang, config=config, timeout=self.timeout
            )
            data = pytesseract.image_to_data(
                pil_image,
                lang=self.lang,
                config=config,
                timeout=self.timeout,
                output_type=pytesseract.Output.DICT,
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise EngineUnavailableError(f"Tesseract executable not available: {exc}") from exc
        except (pytesseract.TesseractError, RuntimeError, OSError) as exc:
            raise EngineError(f"Tesseract recognition failed: {exc}") from exc

        words: list[OCRWord] = []
        for i in range(len(data["text"])):
            word_text = str(data["text"][i]).strip()
            conf = float(data["conf"][i])
            if not word_text or conf < 0:
                continue
            words.append(
                OCRWord(
                    text=word_text,
                    bbox=BoundingBox(
                        x=int(data["left"][i]),
                        y=int(data["top"][i]),
                        width=int(data["width"][i]),
                        height=int(data["height"][i]),
                    ),
                    confidence=conf,
                )
            )

        logger.debug("Tesseract returned %d words (%s)", len(words), config)
        return EngineOutput(text=text, words=words)

    def dispose(self) -> None:
        """Release the engine; later recognition calls fail."""
        self.disposed = True


def tesseract_engine_factory(
    tesseract_cmd: str | None = None,
    default_lang: str = "eng",
    timeout: float = 0,
):
    """Return a zero-argument callable building fresh Tesseract engines."""

    def _create() -> TesseractEngine:
        return TesseractEngine(
            tesseract_cmd=tesseract_cmd,
            default_lang=default_lang,
            timeout=timeout,
        )

    return _create
