"""Tests for FastAPI endpoints."""

import pytest
from fastapi.testclient import TestClient

from conftest import StubDetector, make_finding
from piiscope.errors import DetectionResult, quota_exceeded
from piiscope.main import app, get_detector
from piiscope.models import PIIKind


@pytest.fixture
def detector():
    return StubDetector({
        "invoice.pdf": DetectionResult.success([
            make_finding(PIIKind.EMAIL, "billing@example.com", 0.95, "send to billing@example.com"),
            make_finding(PIIKind.SSN, "123-45-6789", 0.9),
        ]),
        "photo.png": RuntimeError("decoder exploded"),
        "limited.jpg": DetectionResult.failure(quota_exceeded()),
    })


@pytest.fixture
def client(detector):
    app.dependency_overrides[get_detector] = lambda: detector
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_upload_info(client):
    response = client.get("/api/upload")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["maxFiles"] == 5
    assert data["maxFileSize"] == "10MB"


def test_upload_no_files(client, detector):
    """Test processing without a file."""
    response = client.post("/api/upload", data={"note": "nothing attached"})

    assert response.status_code == 400
    assert response.json()["detail"] == "No files provided"
    assert detector.calls == []


def test_upload_too_many_files(client, detector):
    files = [("files", (f"doc{i}.pdf", b"%PDF-1.4", "application/pdf")) for i in range(6)]

    response = client.post("/api/upload", files=files)

    assert response.status_code == 400
    assert "Maximum 5 files" in response.json()["detail"]
    assert detector.calls == []


def test_upload_invalid_file_type(client, detector):
    """Test processing with unsupported files."""
    files = [
        ("files", ("notes.txt", b"plain text", "text/plain")),
        ("files", ("data.csv", b"a,b", "text/csv")),
    ]

    response = client.post("/api/upload", files=files)

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert "File 1 (notes.txt): File type not supported" in detail
    assert "File 2 (data.csv): File type not supported" in detail
    assert detector.calls == []


def test_upload_partial_failure(client):
    files = [
        ("files", ("invoice.pdf", b"%PDF-1.4 invoice", "application/pdf")),
        ("files", ("photo.png", b"\x89PNG", "image/png")),
        ("files", ("limited.jpg", b"\xff\xd8\xff", "image/jpeg")),
    ]

    response = client.post("/api/upload", files=files)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Processed 3 file(s) successfully (2 failed)"

    results = body["data"]
    assert [r["filename"] for r in results] == ["invoice.pdf", "photo.png", "limited.jpg"]
    assert results[0]["success"] is True
    assert results[0]["fileType"] == "pdf"
    assert "error" not in results[0]
    assert [f["type"] for f in results[0]["findings"]] == ["email", "ssn"]
    assert results[1] == {**results[1], "success": False, "findings": [], "error": "decoder exploded"}
    assert results[2]["error"] == "API quota exceeded. Please check your billing and usage limits."

    summary = body["summary"]
    assert summary["totalFiles"] == 3
    assert summary["successfulFiles"] == 1
    assert summary["failedFiles"] == 2
    assert summary["totalPIIFound"] == 2
    assert summary["findingsByType"] == {"email": 1, "ssn": 1}
    assert summary["hasErrors"] is True

    assert body["riskLevel"] == "critical"
    assert "Some files failed processing - manual review recommended" in body["recommendations"]
    assert "[REDACTED]" in body["report"]


def test_upload_clean_file(client):
    files = [("files", ("blank.pdf", b"%PDF-1.4", "application/pdf"))]

    response = client.post("/api/upload", files=files)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Processed 1 file(s) successfully"
    assert body["riskLevel"] == "low"
    assert body["recommendations"] == ["No PII detected - files appear to be safe for sharing"]
