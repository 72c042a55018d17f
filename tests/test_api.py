"""Tests for the FastAPI endpoints."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from conftest import FakeEngineFactory, sample_output
from sitescan.api.app import create_app
from sitescan.exceptions import EngineUnavailableError
from sitescan.utils.config import AppConfig


@pytest.fixture
def factory() -> FakeEngineFactory:
    return FakeEngineFactory()


@pytest.fixture
def client(fast_config: AppConfig, factory: FakeEngineFactory) -> Iterator[TestClient]:
    with TestClient(create_app(fast_config, factory)) as test_client:
        yield test_client


def _upload(client: TestClient, content: bytes, filename: str = "scan.png", doc: str = "doc-1"):
    return client.post(
        f"/documents/{doc}/ocr",
        files={"file": (filename, content, "application/octet-stream")},
    )


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health_reports_pool(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "tesseractAvailable" in data
        assert data["pool"]["maxWorkers"] == 2
        assert data["pool"]["idle"] == 2

    def test_lifespan_disposes_pool(self, fast_config: AppConfig, factory: FakeEngineFactory) -> None:
        with TestClient(create_app(fast_config, factory)):
            assert len(factory.engines) == 2
        assert all(engine.disposed for engine in factory.engines)


class TestOCREndpoint:
    """Tests for POST /documents/{document_id}/ocr."""

    def test_success(self, client: TestClient, sample_png: bytes) -> None:
        response = _upload(client, sample_png)
        assert response.status_code == 200
        data = response.json()
        assert data["documentId"] == "doc-1"
        assert data["status"] == "completed"
        assert data["extractedText"]
        assert data["processingTimeMs"] > 0
        assert data["id"].startswith("ocr_")
        assert len(data["boundingBoxes"]) > 0
        assert len(data["extractedData"]["amounts"]) == 1
        assert data["extractedData"]["amounts"][0]["currency"] == "IDR"

    def test_unsupported_format(self, client: TestClient, sample_png: bytes) -> None:
        response = _upload(client, sample_png, filename="payload.exe")
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert "Unsupported format" in detail["error"]
        assert detail["jobId"].startswith("ocr_")

    def test_empty_file(self, client: TestClient) -> None:
        response = _upload(client, b"")
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "File is empty"

    def test_corrupt_image(self, client: TestClient) -> None:
        response = _upload(client, b"garbage bytes")
        assert response.status_code == 422

    def test_engine_failure(self, fast_config: AppConfig, sample_png: bytes) -> None:
        factory = FakeEngineFactory(failures=[99])
        with TestClient(create_app(fast_config, factory)) as client:
            response = _upload(client, sample_png)
        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "engine crashed"

    def test_engine_unavailable(self, fast_config: AppConfig, sample_png: bytes) -> None:
        factory = FakeEngineFactory(failures=[99], error=EngineUnavailableError)
        with TestClient(create_app(fast_config, factory)) as client:
            response = _upload(client, sample_png)
        assert response.status_code == 503

    def test_project_header_fields(self, fast_config: AppConfig, sample_png: bytes) -> None:
        text = "PROYEK: Gedung Serbaguna\nNomor Kontrak: 027/SPK/2024\n"
        factory = FakeEngineFactory(output=sample_output(text))
        with TestClient(create_app(fast_config, factory)) as client:
            response = _upload(client, sample_png)
        data = response.json()["extractedData"]
        assert data["projectName"] == "Gedung Serbaguna"
        assert data["contractNumber"] == "027/SPK/2024"


class TestJobEndpoints:
    """Tests for job status polling."""

    def test_completed_job_visible(self, client: TestClient, sample_png: bytes) -> None:
        job_id = _upload(client, sample_png).json()["id"]
        response = client.get(f"/jobs/{job_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["progress"] == 100
        assert data["result"]["documentId"] == "doc-1"

    def test_failed_job_visible(self, client: TestClient, sample_png: bytes) -> None:
        job_id = _upload(client, sample_png, filename="x.exe").json()["detail"]["jobId"]
        data = client.get(f"/jobs/{job_id}").json()
        assert data["status"] == "failed"
        assert data["progress"] == 0
        assert "Unsupported format" in data["error"]

    def test_unknown_job(self, client: TestClient) -> None:
        response = client.get("/jobs/ocr_missing")
        assert response.status_code == 404
        assert response.json()["detail"] == "Job not found: ocr_missing"

    def test_list_jobs(self, client: TestClient, sample_png: bytes) -> None:
        _upload(client, sample_png, doc="a")
        _upload(client, sample_png, doc="b")
        jobs = client.get("/jobs").json()["jobs"]
        assert [job["documentId"] for job in jobs] == ["a", "b"]
