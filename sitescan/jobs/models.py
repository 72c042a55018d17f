"""Job lifecycle and result records."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from sitescan.extraction.fields import ExtractedData
from sitescan.ocr.executor import WordBox


class JobStatus(StrEnum):
    """Pipeline stages, in the order a job moves through them."""

    QUEUED = "queued"
    PREPROCESSING = "preprocessing"
    RECOGNIZING = "recognizing"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def progress(self) -> int:
        return _PROGRESS[self]


_RANKS = {
    JobStatus.QUEUED: 0,
    JobStatus.PREPROCESSING: 1,
    JobStatus.RECOGNIZING: 2,
    JobStatus.EXTRACTING: 3,
    JobStatus.COMPLETED: 4,
    JobStatus.FAILED: 4,
}

_PROGRESS = {
    JobStatus.QUEUED: 0,
    JobStatus.PREPROCESSING: 10,
    JobStatus.RECOGNIZING: 30,
    JobStatus.EXTRACTING: 70,
    JobStatus.COMPLETED: 100,
    JobStatus.FAILED: 0,
}


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class DocumentResult:
    """Outcome of one document run, completed or failed."""

    id: str
    document_id: str
    status: JobStatus
    extracted_text: str = ""
    confidence: float = 0.0
    bounding_boxes: list[WordBox] = field(default_factory=list)
    extracted_data: ExtractedData = field(default_factory=ExtractedData)
    processing_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=utcnow)
    error_message: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize with the camelCase keys used by API consumers."""
        data: dict[str, object] = {
            "id": self.id,
            "documentId": self.document_id,
            "extractedText": self.extracted_text,
            "confidence": self.confidence,
            "boundingBoxes": [box.to_dict() for box in self.bounding_boxes],
            "extractedData": self.extracted_data.to_dict(),
            "processingTimeMs": self.processing_time_ms,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
        }
        if self.error_message is not None:
            data["errorMessage"] = self.error_message
        return data


@dataclass
class Job:
    """Per-document processing request tracked by the status registry."""

    id: str
    document_id: str
    filename: str = ""
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    result: DocumentResult | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    processing_time_ms: float | None = None

    def advance(self, status: JobStatus) -> None:
        """Move to a later stage; moving backwards or out of a terminal state fails.

        Raises:
            ValueError: If the transition would retreat.
        """
        if self.status.is_terminal:
            raise ValueError(f"Job {self.id} already {self.status}")
        if status.rank <= self.status.rank and status is not JobStatus.FAILED:
            raise ValueError(f"Job {self.id} cannot move from {self.status} to {status}")
        self.status = status
        self.progress = status.progress
        if status.is_terminal:
            self.finished_at = utcnow()
