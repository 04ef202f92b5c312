import logging
import re
from dataclasses import dataclass

import fitz  # PyMuPDF

from piiscope.errors import DetectionResult, ErrorCode, create_error
from piiscope.models import FileType, PIIFinding, PIIKind, Position, UploadedDocument

logger = logging.getLogger(__name__)

# Characters of surrounding text kept on each side of a match
CONTEXT_WINDOW = 40


@dataclass(frozen=True)
class PIIPattern:
    regex: re.Pattern
    confidence: float


PII_PATTERNS: dict[PIIKind, PIIPattern] = {
    PIIKind.EMAIL: PIIPattern(
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        0.95,
    ),
    PIIKind.PHONE: PIIPattern(
        re.compile(r"(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}"),
        0.90,
    ),
    PIIKind.SSN: PIIPattern(
        re.compile(r"\b(?:\d{3}-?\d{2}-?\d{4}|\d{3}\s\d{2}\s\d{4})\b"),
        0.95,
    ),
    PIIKind.CREDIT_CARD: PIIPattern(
        re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b"),
        0.85,
    ),
    # Two or three capitalized words only; common text produces too many false positives otherwise
    PIIKind.NAME: PIIPattern(
        re.compile(r"\b[A-Z][a-z]{2,}[ \t]+[A-Z][a-z]{2,}(?:[ \t]+[A-Z][a-z]{2,})?\b"),
        0.70,
    ),
    PIIKind.ADDRESS: PIIPattern(
        re.compile(
            r"\b\d+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+"
            r"(?:St|Street|Ave|Avenue|Rd|Road|Blvd|Boulevard|Dr|Drive|Ln|Lane|Ct|Court|Way|Place|Plaza)\b",
            re.IGNORECASE,
        ),
        0.80,
    ),
}


def _context_for(text: str, start: int, end: int) -> str:
    snippet = text[max(0, start - CONTEXT_WINDOW):end + CONTEXT_WINDOW]
    return " ".join(snippet.split())


def find_pii(text: str) -> list[PIIFinding]:
    """
    Run every PII pattern over ``text``.

    Patterns are applied in canonical PIIKind order and matches are reported in
    text order. Different kinds may report overlapping spans; nothing is
    de-duplicated across kinds.
    """
    findings = []
    if not text:
        return findings

    for kind, pattern in PII_PATTERNS.items():
        for match in pattern.regex.finditer(text):
            findings.append(
                PIIFinding(
                    type=kind,
                    value=match.group(0),
                    confidence=pattern.confidence,
                    position=Position(start=match.start(), end=match.end()),
                    context=_context_for(text, match.start(), match.end()),
                )
            )
    return findings


def extract_pdf_text(data: bytes) -> str:
    """
    Read the text layer of a PDF with page markers.

    Lines that mostly overlap an already-read line are skipped so overlaid
    text is not read twice.
    """
    pages = []
    with fitz.open(stream=data, filetype="pdf") as doc:
        for page_num, page in enumerate(doc, start=1):
            seen_rects = []
            lines = []
            for block in page.get_text("dict", sort=True)["blocks"]:
                for line in block.get("lines", []):
                    line_text = "".join(span.get("text", "") for span in line["spans"])
                    if not line_text.strip():
                        continue

                    rect = fitz.Rect(line["bbox"])
                    area = rect.get_area()
                    overlapping = area > 0 and any(
                        (rect & seen).get_area() / area > 0.5
                        for seen in seen_rects
                        if rect.intersects(seen)
                    )
                    if overlapping:
                        continue
                    seen_rects.append(rect)
                    lines.append(line_text)

            if lines:
                pages.append(f"--- Page {page_num} ---\n" + "\n".join(lines))

    return "\n\n".join(pages)


def extract_text(document: UploadedDocument, file_type: FileType) -> str:
    if file_type == FileType.PDF:
        return extract_pdf_text(document.data)
    logger.info(f"No text layer for image {document.filename}, pattern detection skipped")
    return ""


class PatternDetector:
    """Local, deterministic detector backed by fixed regular expressions."""

    name = "pattern"

    def detect(self, document: UploadedDocument, file_type: FileType) -> DetectionResult:
        try:
            text = extract_text(document, file_type)
        except (fitz.FileDataError, RuntimeError, ValueError) as e:
            logger.error(f"Could not read PDF text from {document.filename}: {e}")
            return DetectionResult.failure(
                create_error(ErrorCode.PARSE_ERROR, "Failed to read document content", details=e)
            )

        if not text.strip():
            logger.warning(f"No readable text in {document.filename}, pattern detection cannot inspect it")
            return DetectionResult.failure(
                create_error(
                    ErrorCode.PARSE_ERROR,
                    "No readable text in document; pattern detection cannot inspect this file",
                )
            )

        findings = find_pii(text)
        logger.info(f"Pattern detection found {len(findings)} finding(s) in {document.filename}")
        return DetectionResult.success(findings)
