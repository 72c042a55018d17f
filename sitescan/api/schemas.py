"""Pydantic response schemas for the FastAPI endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BoundingBoxResponse(CamelModel):
    """A recognized word with its rectangle."""

    text: str
    x: int
    y: int
    width: int
    height: int
    confidence: float


class ExtractedDataResponse(CamelModel):
    """The eight structured field collections and the project header."""

    dates: list[dict[str, Any]] = []
    amounts: list[dict[str, Any]] = []
    materials: list[dict[str, Any]] = []
    personnel: list[dict[str, Any]] = []
    coordinates: list[dict[str, Any]] = []
    specifications: list[dict[str, Any]] = []
    signatures: list[dict[str, Any]] = []
    tables: list[dict[str, Any]] = []
    project_name: str | None = None
    contract_number: str | None = None


class OCRResultResponse(CamelModel):
    """Result of one document run."""

    id: str
    document_id: str
    extracted_text: str
    confidence: float
    bounding_boxes: list[BoundingBoxResponse]
    extracted_data: ExtractedDataResponse
    processing_time_ms: float
    timestamp: datetime
    status: str
    error_message: str | None = None


class JobStatusResponse(CamelModel):
    """Status snapshot for polling."""

    id: str
    document_id: str
    status: str
    progress: int
    error: str | None = None
    created_at: datetime
    finished_at: datetime | None = None
    processing_time_ms: float | None = None
    result: OCRResultResponse | None = None


class JobListResponse(CamelModel):
    """Retained jobs, oldest first."""

    jobs: list[JobStatusResponse]


class PoolStatsResponse(CamelModel):
    """Worker pool counters."""

    max_workers: int
    idle: int
    in_use: int
    created: int
    disposed: int
    overflow_created: int


class HealthResponse(CamelModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    pool: PoolStatsResponse
