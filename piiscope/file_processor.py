import asyncio
import logging
import time

from piiscope.detectors import Detector
from piiscope.errors import DetectionResult, ErrorCode, ProcessingError, api_error, quota_exceeded
from piiscope.file_types import classify_file
from piiscope.models import FileAnalysisResult, UploadedDocument

logger = logging.getLogger(__name__)


def error_message(error: ProcessingError) -> str:
    """User-facing message for a failed file."""
    if error.code == ErrorCode.QUOTA_EXCEEDED:
        return quota_exceeded().message
    return error.message


def error_from_exception(exc: BaseException) -> ProcessingError:
    message = str(exc) or "An unknown error occurred"
    if "quota" in message.lower():
        return quota_exceeded(exc)
    return ProcessingError(code=ErrorCode.API_ERROR, message=message, details=exc)


class FileProcessor:
    """
    Turns uploaded files into FileAnalysisResult objects.

    The detector is injected and shared read-only by every file task. A failure
    while analyzing one file becomes a ``success=False`` result for that file
    and never reaches the other files of the batch.
    """

    def __init__(self, detector: Detector, timeout_seconds: float = 90.0):
        self.detector = detector
        self.timeout_seconds = timeout_seconds

    async def process_file(self, document: UploadedDocument) -> FileAnalysisResult:
        start_time = time.perf_counter()
        file_type = classify_file(document.filename, document.content_type)

        try:
            outcome = await asyncio.wait_for(
                asyncio.to_thread(self.detector.detect, document, file_type),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Detection timed out for {document.filename} after {self.timeout_seconds}s")
            outcome = DetectionResult.failure(
                api_error(f"Detection timed out after {self.timeout_seconds}s")
            )
        except Exception as e:
            logger.error(f"Detection failed for {document.filename}: {e}", exc_info=True)
            outcome = DetectionResult.failure(error_from_exception(e))

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        if outcome.ok:
            return FileAnalysisResult.succeeded(
                filename=document.filename,
                file_type=file_type,
                findings=outcome.findings,
                processing_time_ms=elapsed_ms,
            )

        logger.warning(f"{document.filename} failed with {outcome.error.code.value}")
        return FileAnalysisResult.failed(
            filename=document.filename,
            file_type=file_type,
            error=error_message(outcome.error),
            processing_time_ms=elapsed_ms,
        )

    async def process_files(self, documents: list[UploadedDocument]) -> list[FileAnalysisResult]:
        """Analyze every file concurrently; results come back in input order."""
        start_time = time.perf_counter()
        outcomes = await asyncio.gather(
            *(self.process_file(document) for document in documents),
            return_exceptions=True,
        )

        results = []
        for document, outcome in zip(documents, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Processing failed for {document.filename}: {outcome!r}")
                outcome = FileAnalysisResult.failed(
                    filename=document.filename,
                    file_type=classify_file(document.filename, document.content_type),
                    error=error_message(error_from_exception(outcome)),
                    processing_time_ms=0,
                )
            results.append(outcome)

        successful = sum(1 for r in results if r.success)
        logger.info(
            f"Processing completed in {int((time.perf_counter() - start_time) * 1000)}ms: "
            f"total={len(results)}, successful={successful}, failed={len(results) - successful}, "
            f"totalPIIFound={sum(len(r.findings) for r in results)}"
        )
        return results
