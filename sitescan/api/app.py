"""FastAPI application for construction document OCR.

Exposes document submission, job status polling, and health endpoints.
The job controller (and with it the worker pool) is created per app and
started and stopped by the app lifespan.
"""

import shutil
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Annotated

from fastapi import FastAPI, File, HTTPException, Path, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from sitescan import __version__
from sitescan.exceptions import (
    DecodeError,
    EngineError,
    EngineUnavailableError,
    JobCancelledError,
    JobNotFoundError,
    SiteScanError,
    ValidationError,
)
from sitescan.jobs.controller import JobController
from sitescan.jobs.models import DocumentResult, Job
from sitescan.ocr.worker_pool import EngineFactory
from sitescan.utils.config import AppConfig, load_config
from sitescan.utils.logger import get_logger

from .schemas import (
    HealthResponse,
    JobListResponse,
    JobStatusResponse,
    OCRResultResponse,
    PoolStatsResponse,
)

logger = get_logger(__name__)

_ERROR_STATUS: dict[type[SiteScanError], int] = {
    ValidationError: 400,
    DecodeError: 422,
    JobCancelledError: 409,
    EngineUnavailableError: 503,
    EngineError: 502,
}


def _status_code(exc: SiteScanError) -> int:
    for error_type, code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return 500


def _result_response(result: DocumentResult) -> OCRResultResponse:
    return OCRResultResponse.model_validate(result.to_dict())


def _job_response(job: Job) -> JobStatusResponse:
    return JobStatusResponse(
        id=job.id,
        document_id=job.document_id,
        status=job.status.value,
        progress=job.progress,
        error=job.error,
        created_at=job.created_at,
        finished_at=job.finished_at,
        processing_time_ms=job.processing_time_ms,
        result=_result_response(job.result) if job.result else None,
    )


def get_controller(request: Request) -> JobController:
    return request.app.state.controller


def create_app(
    config: AppConfig | None = None,
    engine_factory: EngineFactory | None = None,
) -> FastAPI:
    """Build the API with its own job controller.

    Args:
        config: Application configuration; loaded from YAML when omitted.
        engine_factory: Recognition engine factory; Tesseract by default.
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        controller = JobController.from_config(config, engine_factory)
        controller.startup()
        app.state.controller = controller
        try:
            yield
        finally:
            controller.shutdown()

    app = FastAPI(
        title="Site Document OCR API",
        description="Extract text and structured fields from construction site documents",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse, response_model_by_alias=True)
    async def health_check(request: Request) -> HealthResponse:
        """Return system health status and pool counters."""
        stats = get_controller(request).pool.stats()
        return HealthResponse(
            status="healthy",
            version=__version__,
            tesseract_available=shutil.which("tesseract") is not None,
            pool=PoolStatsResponse(**asdict(stats)),
        )

    @app.post(
        "/documents/{document_id}/ocr",
        response_model=OCRResultResponse,
        response_model_by_alias=True,
    )
    async def process_document(
        request: Request,
        document_id: Annotated[str, Path(min_length=1)],
        file: Annotated[UploadFile, File(...)],
    ) -> OCRResultResponse:
        """Run the OCR pipeline on an uploaded document.

        Args:
            document_id: Identifier of the document in the caller's store.
            file: Uploaded document (PDF, JPEG, PNG, TIFF, or BMP).

        Returns:
            The completed OCR result.
        """
        controller = get_controller(request)
        content = await file.read()
        try:
            result = await controller.start(content, file.filename or "", document_id)
        except SiteScanError as exc:
            raise HTTPException(
                status_code=_status_code(exc),
                detail={"jobId": exc.job_id, "error": exc.message},
            ) from exc
        except Exception as exc:
            logger.error("OCR request for document %s failed: %s", document_id, exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return _result_response(result)

    @app.get("/jobs", response_model=JobListResponse, response_model_by_alias=True)
    async def list_jobs(request: Request) -> JobListResponse:
        """List jobs still retained by the status registry."""
        jobs = get_controller(request).registry.list_jobs()
        return JobListResponse(jobs=[_job_response(job) for job in jobs])

    @app.get(
        "/jobs/{job_id}", response_model=JobStatusResponse, response_model_by_alias=True
    )
    async def get_job(request: Request, job_id: str) -> JobStatusResponse:
        """Return the latest status of a job."""
        try:
            job = get_controller(request).status(job_id)
        except JobNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _job_response(job)

    return app


app = create_app()
