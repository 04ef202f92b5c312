"""Pytest configuration and fixtures."""

import os
import time
from pathlib import Path

import fitz
import pytest

from piiscope.errors import DetectionResult
from piiscope.models import PIIFinding, PIIKind, Position, UploadedDocument

# Read once by the app settings at import time
os.environ.setdefault("PII_DETECTOR", "pattern")


@pytest.fixture
def mock_api_key():
    """Provide a mock Google API key."""
    return "test-api-key-12345"


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    """Create a simple test PDF with text."""
    pdf_path = tmp_path / "test.pdf"

    doc = fitz.open()
    page = doc.new_page()
    page.insert_text(
        (72, 72),
        "John Doe\n"
        "john.doe@example.com\n"
        "123 Main Street\n"
        "Phone: +1-555-123-4567",
        fontsize=12,
    )
    doc.save(pdf_path)
    doc.close()

    return pdf_path


@pytest.fixture
def pdf_document(sample_pdf: Path) -> UploadedDocument:
    return UploadedDocument(
        filename="test.pdf", content_type="application/pdf", data=sample_pdf.read_bytes()
    )


@pytest.fixture
def image_document() -> UploadedDocument:
    return UploadedDocument(filename="scan.png", content_type="image/png", data=b"\x89PNG fake image")


def make_finding(kind: PIIKind, value: str, confidence: float = 0.9, context: str = "") -> PIIFinding:
    return PIIFinding(
        type=kind,
        value=value,
        confidence=confidence,
        position=Position(start=0, end=len(value)),
        context=context,
    )


def gemini_envelope(text: str) -> dict:
    """Wrap model output text the way the generateContent API returns it."""
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


@pytest.fixture
def mock_gemini_response():
    """Provide a mock Gemini API response."""
    return gemini_envelope(
        "Here is what I found:\n"
        "```json\n"
        "[\n"
        '  {"type": "name", "value": "Maria Keller", "confidence": 0.92, "context": "Patient: Maria Keller"},\n'
        '  {"type": "email", "value": "maria.keller@example.com", "confidence": 0.98, "context": "mail maria.keller@example.com"},\n'
        '  {"type": "ssn", "value": "123-45-6789", "confidence": 0.97, "context": "SSN 123-45-6789"}\n'
        "]\n"
        "```"
    )


class StubDetector:
    """Detector double returning canned outcomes per filename."""

    name = "stub"

    def __init__(self, outcomes=None, delays=None):
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.calls = []

    def detect(self, document, file_type):
        self.calls.append(document.filename)
        time.sleep(self.delays.get(document.filename, 0))
        outcome = self.outcomes.get(document.filename, DetectionResult.success([]))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture(autouse=True)
def set_test_env():
    """Set test environment variables."""
    os.environ["GOOGLE_API_KEY"] = "test-api-key"
    yield
