"""Detection backends and the policy that picks one from configuration."""

import logging
from typing import Protocol

from piiscope.config import Settings
from piiscope.errors import DetectionResult, ErrorCode
from piiscope.gemini_analyzer import GeminiAnalyzer
from piiscope.models import FileType, UploadedDocument
from piiscope.pattern_detector import PatternDetector

logger = logging.getLogger(__name__)

DETECTOR_MODES = ("remote", "pattern", "fallback", "auto")

# Remote failures that the local pattern backend can stand in for
FALLBACK_CODES = {ErrorCode.API_ERROR, ErrorCode.QUOTA_EXCEEDED, ErrorCode.PARSE_ERROR}


class Detector(Protocol):
    name: str

    def detect(self, document: UploadedDocument, file_type: FileType) -> DetectionResult:
        ...


class FallbackDetector:
    """Runs ``primary`` and retries with ``fallback`` when the primary backend is unavailable."""

    def __init__(self, primary: Detector, fallback: Detector):
        self.primary = primary
        self.fallback = fallback
        self.name = f"{primary.name}+{fallback.name}"

    def detect(self, document: UploadedDocument, file_type: FileType) -> DetectionResult:
        result = self.primary.detect(document, file_type)
        if result.ok or result.error.code not in FALLBACK_CODES:
            return result

        logger.warning(
            f"{self.primary.name} detector failed for {document.filename} "
            f"({result.error.code.value}), falling back to {self.fallback.name}"
        )
        fallback_result = self.fallback.detect(document, file_type)
        if fallback_result.ok:
            return fallback_result

        # the primary failure is the one the caller can act on
        logger.error(
            f"{self.fallback.name} detector also failed for {document.filename}: "
            f"{fallback_result.error.message}"
        )
        return result


def build_detector(settings: Settings) -> Detector:
    """
    Build the detector named by ``settings.detector``.

    ``auto`` uses the remote detector with pattern fallback when an API key is
    configured, and the pattern detector alone otherwise.
    """
    mode = settings.detector
    if mode not in DETECTOR_MODES:
        raise ValueError(f"Unknown detector mode {mode!r}, expected one of {', '.join(DETECTOR_MODES)}")

    if mode == "auto":
        mode = "fallback" if settings.google_api_key else "pattern"
        if mode == "pattern":
            logger.warning("GOOGLE_API_KEY not set, using local pattern detection only")

    if mode == "pattern":
        return PatternDetector()

    remote = GeminiAnalyzer(
        api_key=settings.google_api_key,
        model=settings.gemini_model,
        api_base=settings.gemini_api_base,
        timeout_seconds=settings.gemini_timeout_seconds,
        max_file_size=settings.max_file_size,
        config_path=settings.pii_config_path,
    )
    if mode == "remote":
        return remote
    return FallbackDetector(remote, PatternDetector())
