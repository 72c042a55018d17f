"""Shared fixtures for the site document OCR test suite."""

import io
import threading
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from sitescan.exceptions import EngineError
from sitescan.ocr.tesseract_engine import BoundingBox, EngineOutput, OCRWord
from sitescan.utils.config import AppConfig, OCRConfig

SAMPLE_TEXT = (
    "BERITA ACARA PEMERIKSAAN\n"
    "Tanggal: 15/01/2025\n"
    "Material: semen dan besi beton\n"
    "Nilai kontrak Rp 1.000.000\n"
    "Mandor: Budi\n"
    "Ttd\n"
)


def make_word(
    text: str = "hello",
    x: int = 10,
    y: int = 10,
    width: int = 50,
    height: int = 20,
    confidence: float = 90.0,
) -> OCRWord:
    """Create a test OCRWord with a 0-100 confidence."""
    return OCRWord(
        text=text,
        bbox=BoundingBox(x=x, y=y, width=width, height=height),
        confidence=confidence,
    )


def sample_output(text: str = SAMPLE_TEXT) -> EngineOutput:
    """Engine output with one box per whitespace-separated token."""
    words = [
        make_word(text=token, x=10 + 60 * i, confidence=80.0 + (i % 3) * 5)
        for i, token in enumerate(text.split())
    ]
    return EngineOutput(text=text, words=words)


class FakeEngine:
    """In-memory recognition engine.

    Args:
        output: Output returned by every successful call.
        failures: Shared one-element list counting remaining failures.
        gate: Event waited on inside ``recognize`` when given.
        error: Exception type raised while failures remain.
    """

    def __init__(
        self,
        output: EngineOutput | None = None,
        failures: list[int] | None = None,
        gate: threading.Event | None = None,
        error: type[Exception] = EngineError,
    ) -> None:
        self.output = output or sample_output()
        self.failures = failures if failures is not None else [0]
        self.gate = gate
        self.error = error
        self.params: dict[str, object] = {}
        self.calls = 0
        self.bitmaps: list[np.ndarray] = []
        self.disposed = False

    def configure(self, params: dict[str, object]) -> None:
        self.params = dict(params)

    def recognize(self, bitmap: np.ndarray) -> EngineOutput:
        self.calls += 1
        self.bitmaps.append(bitmap)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.failures[0] > 0:
            self.failures[0] -= 1
            raise self.error("engine crashed")
        return self.output

    def dispose(self) -> None:
        self.disposed = True


class FakeEngineFactory:
    """Callable engine factory recording every engine it builds."""

    def __init__(self, **engine_kwargs: object) -> None:
        self.engine_kwargs = engine_kwargs
        self.engines: list[FakeEngine] = []

    def __call__(self) -> FakeEngine:
        engine = FakeEngine(**self.engine_kwargs)
        self.engines.append(engine)
        return engine


def png_bytes(width: int = 300, height: int = 200, mode: str = "RGB") -> bytes:
    """Encode a synthetic page (dark text band on light paper) as PNG."""
    channels = 4 if mode == "RGBA" else 3
    array = np.full((height, width, channels), 230, dtype=np.uint8)
    array[height // 3 : height // 2, width // 6 : width - width // 6, :3] = 20
    if channels == 4:
        array[..., 3] = 200
    buf = io.BytesIO()
    Image.fromarray(array).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def fast_config() -> AppConfig:
    """Default configuration with retry delays removed."""
    return AppConfig(ocr=OCRConfig(retry_base_delay=0.0, retry_max_delay=0.0))


@pytest.fixture
def engine_factory() -> FakeEngineFactory:
    return FakeEngineFactory()


@pytest.fixture
def sample_png() -> bytes:
    return png_bytes()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent
