"""Tests for pattern_detector module."""

import fitz  # PyMuPDF

from piiscope.errors import ErrorCode
from piiscope.models import FileType, PIIKind, UploadedDocument
from piiscope.pattern_detector import PII_PATTERNS, PatternDetector, extract_pdf_text, find_pii


def test_pattern_confidences():
    confidences = {kind: pattern.confidence for kind, pattern in PII_PATTERNS.items()}
    assert confidences == {
        PIIKind.EMAIL: 0.95,
        PIIKind.PHONE: 0.90,
        PIIKind.SSN: 0.95,
        PIIKind.CREDIT_CARD: 0.85,
        PIIKind.NAME: 0.70,
        PIIKind.ADDRESS: 0.80,
    }


def test_find_pii_structured_values():
    text = "reach jane.smith@example.com or (555) 123-4567, ssn 123-45-6789, card 4111 1111 1111 1111."

    findings = find_pii(text)

    assert [(f.type, f.value) for f in findings] == [
        (PIIKind.EMAIL, "jane.smith@example.com"),
        (PIIKind.PHONE, "(555) 123-4567"),
        (PIIKind.SSN, "123-45-6789"),
        (PIIKind.CREDIT_CARD, "4111 1111 1111 1111"),
    ]
    for finding in findings:
        assert text[finding.position.start:finding.position.end] == finding.value


def test_find_pii_names_limited_to_capitalized_words():
    findings = find_pii("signed by Maria Keller and witnessed by the clerk")

    names = [f for f in findings if f.type == PIIKind.NAME]
    assert [f.value for f in names] == ["Maria Keller"]
    assert names[0].confidence == 0.70


def test_find_pii_overlapping_kinds_are_kept():
    findings = find_pii("lives at 42 Baker Street today")

    by_type = {f.type: f.value for f in findings}
    assert by_type[PIIKind.ADDRESS] == "42 Baker Street"
    assert by_type[PIIKind.NAME] == "Baker Street"


def test_find_pii_context_is_bounded():
    text = ("lorem ipsum " * 20) + "mail jane@example.com now " + ("dolor sit " * 20)

    finding = find_pii(text)[0]

    assert finding.type == PIIKind.EMAIL
    assert "jane@example.com" in finding.context
    assert len(finding.context) <= 100


def test_find_pii_empty_text():
    assert find_pii("") == []


def test_find_pii_is_deterministic():
    text = "Anna Berg, anna.berg@example.org, 555.123.4567"
    assert find_pii(text) == find_pii(text)


def test_extract_pdf_text(sample_pdf):
    text = extract_pdf_text(sample_pdf.read_bytes())

    assert "--- Page 1 ---" in text
    assert "John Doe" in text
    assert "john.doe@example.com" in text


def test_pattern_detector_pdf(pdf_document):
    result = PatternDetector().detect(pdf_document, FileType.PDF)

    assert result.ok
    values = {(f.type, f.value) for f in result.findings}
    assert (PIIKind.EMAIL, "john.doe@example.com") in values
    assert (PIIKind.NAME, "John Doe") in values
    assert (PIIKind.ADDRESS, "123 Main Street") in values


def test_pattern_detector_image_has_no_text(image_document):
    result = PatternDetector().detect(image_document, FileType.IMAGE)

    assert not result.ok
    assert result.error.code == ErrorCode.PARSE_ERROR
    assert "No readable text" in result.error.message


def test_pattern_detector_pdf_without_text_layer(tmp_path):
    doc = fitz.open()
    doc.new_page()
    pdf_path = tmp_path / "scanned.pdf"
    doc.save(pdf_path)
    doc.close()
    document = UploadedDocument(
        filename="scanned.pdf", content_type="application/pdf", data=pdf_path.read_bytes()
    )

    result = PatternDetector().detect(document, FileType.PDF)

    assert not result.ok
    assert result.error.code == ErrorCode.PARSE_ERROR


def test_pattern_detector_unreadable_pdf():
    document = UploadedDocument(filename="fake.pdf", content_type="application/pdf", data=b"not a pdf")

    result = PatternDetector().detect(document, FileType.PDF)

    assert not result.ok
    assert result.error.code == ErrorCode.PARSE_ERROR
