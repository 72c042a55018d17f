"""Runs one recognition call against a pooled engine handle.

The handle is checked out for the whole call and returned on every exit path.
Transient engine failures are retried; bitmap problems are rejected up
front and never retried.
"""

import asyncio
from dataclasses import dataclass, field

import numpy as np

from sitescan.exceptions import DecodeError, EngineError
from sitescan.utils.config import OCRConfig
from sitescan.utils.logger import get_logger
from sitescan.utils.retry import retry_with_backoff

from .tesseract_engine import EngineOutput, OCRWord
from .worker_pool import WorkerHandle, WorkerPool

logger = get_logger(__name__)


@dataclass
class WordBox:
    """A recognized word with its rectangle and 0-1 confidence."""

    text: str
    x: int
    y: int
    width: int
    height: int
    confidence: float

    def to_dict(self) -> dict[str, object]:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "confidence": self.confidence,
        }


@dataclass
class RecognitionResult:
    """Text, overall confidence, and ordered word boxes for one bitmap."""

    text: str
    confidence: float
    boxes: list[WordBox] = field(default_factory=list)


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def aggregate_confidence(words: list[OCRWord]) -> float:
    """Average 0-100 word confidences over non-empty words, scaled to 0-1.

    Returns 0.0 when no word carries text.
    """
    scored = [w.confidence for w in words if w.text.strip()]
    if not scored:
        return 0.0
    return _clamp(sum(scored) / len(scored) / 100.0)


def to_word_boxes(words: list[OCRWord]) -> list[WordBox]:
    return [
        WordBox(
            text=w.text,
            x=w.bbox.x,
            y=w.bbox.y,
            width=w.bbox.width,
            height=w.bbox.height,
            confidence=_clamp(w.confidence / 100.0),
        )
        for w in words
        if w.text.strip()
    ]


def check_bitmap(bitmap: object) -> None:
    """Reject bitmaps no engine could read.

    Raises:
        DecodeError: If ``bitmap`` is not a non-empty 2-D or 3-D array.
    """
    if not isinstance(bitmap, np.ndarray):
        raise DecodeError(f"Bitmap must be a numpy array, got {type(bitmap).__name__}")
    if bitmap.ndim not in (2, 3) or bitmap.size == 0:
        raise DecodeError(f"Invalid bitmap shape {bitmap.shape}")
    if bitmap.ndim == 3 and bitmap.shape[2] not in (1, 3, 4):
        raise DecodeError(f"Unsupported channel count {bitmap.shape[2]}")


class OCRExecutor:
    """Recognizes preprocessed bitmaps using handles from a worker pool.

    Args:
        pool: Pool supplying engine handles.
        config: Engine parameters and retry policy.
    """

    def __init__(self, pool: WorkerPool, config: OCRConfig | None = None) -> None:
        self.pool = pool
        self.config = config or OCRConfig()

    @property
    def engine_params(self) -> dict[str, object]:
        params: dict[str, object] = {
            "psm": self.config.psm,
            "lang": self.config.default_lang,
            "preserve_interword_spaces": self.config.preserve_interword_spaces,
        }
        if self.config.oem is not None:
            params["oem"] = self.config.oem
        return params

    async def recognize(self, bitmap: np.ndarray) -> RecognitionResult:
        """Run recognition on a bitmap with bounded retries.

        Raises:
            DecodeError: If the bitmap is invalid; no handle is acquired.
            EngineError: If every attempt failed.
            EngineUnavailableError: If the engine cannot run at all.
        """
        check_bitmap(bitmap)

        @retry_with_backoff(
            max_attempts=self.config.max_attempts,
            base_delay=self.config.retry_base_delay,
            max_delay=self.config.retry_max_delay,
            retryable=(EngineError,),
        )
        async def _attempt(handle: WorkerHandle) -> EngineOutput:
            return await asyncio.to_thread(handle.engine.recognize, bitmap)

        handle = await self._acquire()
        try:
            handle.engine.configure(self.engine_params)
            output = await _attempt(handle)
        except EngineError as exc:
            logger.error(
                "Recognition failed after %d attempts on worker %d: %s",
                self.config.max_attempts,
                handle.handle_id,
                exc,
            )
            raise
        finally:
            self.pool.release(handle)

        confidence = aggregate_confidence(output.words)
        boxes = to_word_boxes(output.words)
        logger.info(
            "OCR extracted %d words with average confidence %.2f",
            len(boxes),
            confidence,
        )
        return RecognitionResult(text=output.text, confidence=confidence, boxes=boxes)

    async def _acquire(self) -> WorkerHandle:
        """Check out a handle from a worker thread.

        Engine construction for an overflow handle may block. If the caller
        is cancelled while the acquire is still running, the handle it
        eventually yields goes straight back to the pool.
        """
        acquiring = asyncio.ensure_future(asyncio.to_thread(self.pool.acquire))
        try:
            return await asyncio.shield(acquiring)
        except asyncio.CancelledError:
            acquiring.add_done_callback(self._release_orphan)
            raise

    def _release_orphan(self, future: "asyncio.Future[WorkerHandle]") -> None:
        if future.cancelled() or future.exception() is not None:
            return
        self.pool.release(future.result())
