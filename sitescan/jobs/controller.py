"""Per-document OCR pipeline: validate, preprocess, recognize, extract.

Stages run strictly in sequence for one job, while many jobs may run
concurrently against a shared worker pool. Every transition is published
to the status registry; a failure at any stage is recorded there as
``failed`` and also re-raised to the caller.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Protocol

from sitescan.exceptions import JobCancelledError, SiteScanError
from sitescan.extraction.extractor import StructuredExtractor
from sitescan.extraction.plausibility import blend_confidence
from sitescan.ocr.executor import OCRExecutor
from sitescan.ocr.tesseract_engine import tesseract_engine_factory
from sitescan.ocr.worker_pool import EngineFactory, WorkerPool
from sitescan.preprocessing.pipeline import ImagePreprocessor
from sitescan.utils.config import AppConfig
from sitescan.utils.logger import get_logger

from .models import DocumentResult, Job, JobStatus
from .registry import StatusRegistry
from .validation import validate_upload

logger = get_logger(__name__)


class CancelSignal(Protocol):
    """Anything with ``is_set()``, e.g. ``asyncio.Event`` or ``threading.Event``."""

    def is_set(self) -> bool: ...


@dataclass
class Submission:
    """One document handed to :meth:`JobController.process_many`."""

    content: bytes
    filename: str
    document_id: str


def new_job_id() -> str:
    return f"ocr_{uuid.uuid4().hex[:16]}"


class JobController:
    """Drives documents through the OCR pipeline and tracks their status.

    The controller does not own a process-wide state: the pool and the
    registry are passed in (or built from the config) and the caller is
    responsible for :meth:`startup` and :meth:`shutdown`.

    Args:
        pool: Worker pool shared by all jobs of this controller.
        registry: Status registry; a private one is created when omitted.
        config: Application configuration.
    """

    def __init__(
        self,
        pool: WorkerPool,
        registry: StatusRegistry | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.pool = pool
        self.registry = (
            registry if registry is not None else StatusRegistry(self.config.registry)
        )
        self.preprocessor = ImagePreprocessor(self.config.preprocessing)
        self.executor = OCRExecutor(pool, self.config.ocr)
        self.extractor = StructuredExtractor(self.config.extraction)

    @classmethod
    def from_config(
        cls, config: AppConfig, engine_factory: EngineFactory | None = None
    ) -> "JobController":
        """Build a controller with its own pool and registry."""
        factory = engine_factory or tesseract_engine_factory(
            tesseract_cmd=config.ocr.tesseract_cmd,
            default_lang=config.ocr.default_lang,
            timeout=config.ocr.timeout,
        )
        pool = WorkerPool(factory, max_workers=config.pool.max_workers)
        return cls(pool, StatusRegistry(config.registry), config)

    def startup(self) -> None:
        """Warm the worker pool if configured to."""
        if self.config.pool.warm_up:
            self.pool.start()

    def shutdown(self) -> None:
        """Dispose idle worker handles."""
        self.pool.cleanup()

    def status(self, job_id: str) -> Job:
        """Return the latest snapshot of a job.

        Raises:
            JobNotFoundError: If the registry holds no such job.
        """
        return self.registry.require(job_id)

    async def start(
        self,
        content: bytes,
        filename: str,
        document_id: str,
        cancel_event: CancelSignal | None = None,
    ) -> DocumentResult:
        """Process one document end to end.

        Args:
            content: Raw uploaded file bytes.
            filename: Original file name, used for extension validation.
            document_id: Caller-supplied document identifier.
            cancel_event: Optional signal checked before each stage.

        Returns:
            The completed result.

        Raises:
            SiteScanError: Any stage failure, after the job has been
                recorded as failed; ``job_id`` is set on the exception.
        """
        job = Job(id=new_job_id(), document_id=document_id, filename=filename)
        self.registry.register(job)
        started = time.perf_counter()
        logger.info(
            "Starting OCR job %s for document %s (%s, %d bytes)",
            job.id,
            document_id,
            filename,
            len(content),
        )

        try:
            validate_upload(filename, len(content), self.config.validation)

            self._checkpoint(job, cancel_event)
            self._transition(job, JobStatus.PREPROCESSING)
            preprocessed = await asyncio.to_thread(self.preprocessor.process, content)

            self._checkpoint(job, cancel_event)
            self._transition(job, JobStatus.RECOGNIZING)
            bitmap = await asyncio.to_thread(preprocessed.to_bitmap)
            recognition = await self.executor.recognize(bitmap)

            self._checkpoint(job, cancel_event)
            self._transition(job, JobStatus.EXTRACTING)
            extracted = await self.extractor.extract(recognition.text, recognition.boxes)
        except (Exception, asyncio.CancelledError) as exc:
            self._fail(job, exc, started)
            raise

        confidence = recognition.confidence
        if self.config.extraction.validate_fields:
            confidence = blend_confidence(confidence, recognition.boxes)

        elapsed_ms = _elapsed_ms(started)
        result = DocumentResult(
            id=job.id,
            document_id=document_id,
            status=JobStatus.COMPLETED,
            extracted_text=recognition.text,
            confidence=confidence,
            bounding_boxes=recognition.boxes,
            extracted_data=extracted,
            processing_time_ms=elapsed_ms,
        )
        job.result = result
        job.processing_time_ms = elapsed_ms
        self._transition(job, JobStatus.COMPLETED)

        logger.info(
            "OCR job %s completed in %.1f ms (confidence %.2f, %d fields)",
            job.id,
            elapsed_ms,
            confidence,
            extracted.total,
        )
        return result

    async def process_many(
        self, submissions: list[Submission]
    ) -> list[DocumentResult | BaseException]:
        """Run several submissions concurrently.

        Returns:
            One entry per submission, in order: the result, or the
            exception that failed it.
        """
        return await asyncio.gather(
            *(self.start(s.content, s.filename, s.document_id) for s in submissions),
            return_exceptions=True,
        )

    def _transition(self, job: Job, status: JobStatus) -> None:
        job.advance(status)
        self.registry.update(job)
        logger.debug("Job %s -> %s (%d%%)", job.id, status, job.progress)

    def _checkpoint(self, job: Job, cancel_event: CancelSignal | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelledError(f"Job cancelled before {_next_stage(job)}", job.id)

    def _fail(self, job: Job, exc: BaseException, started: float) -> None:
        elapsed_ms = _elapsed_ms(started)
        message = str(exc) or type(exc).__name__
        if isinstance(exc, SiteScanError):
            exc.job_id = job.id

        job.error = message
        job.processing_time_ms = elapsed_ms
        job.result = DocumentResult(
            id=job.id,
            document_id=job.document_id,
            status=JobStatus.FAILED,
            processing_time_ms=elapsed_ms,
            error_message=message,
        )
        job.advance(JobStatus.FAILED)
        self.registry.update(job)
        logger.error(
            "OCR job %s failed after %.1f ms: %s: %s",
            job.id,
            elapsed_ms,
            type(exc).__name__,
            message,
        )


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _next_stage(job: Job) -> str:
    following = {
        JobStatus.QUEUED: JobStatus.PREPROCESSING,
        JobStatus.PREPROCESSING: JobStatus.RECOGNIZING,
        JobStatus.RECOGNIZING: JobStatus.EXTRACTING,
    }
    return str(following.get(job.status, job.status))
