"""Request and per-file checks run before any detection starts."""

import logging

from piiscope.config import MB, Settings
from piiscope.errors import ProcessingError, validation_error
from piiscope.file_types import ACCEPTED_MIME_TYPES, ALLOWED_EXTENSIONS, get_extension
from piiscope.models import UploadedDocument

logger = logging.getLogger(__name__)


def _megabytes(size: int) -> int:
    return round(size / MB)


def validate_request(documents: list[UploadedDocument], settings: Settings) -> list[str]:
    """Batch-level constraints: file count and aggregate size."""
    if not documents:
        return ["No files provided"]

    reasons = []
    if len(documents) > settings.max_files_per_request:
        reasons.append(
            f"Too many files. Maximum {settings.max_files_per_request} files allowed per request"
        )

    total_size = sum(document.size for document in documents)
    if total_size > settings.max_request_size:
        reasons.append(
            f"Total file size exceeds {_megabytes(settings.max_request_size)}MB limit"
        )
    return reasons


def validate_file(document: UploadedDocument, settings: Settings) -> list[str]:
    reasons = []
    mime = (document.content_type or "").lower()
    if mime not in ACCEPTED_MIME_TYPES and get_extension(document.filename) not in ALLOWED_EXTENSIONS:
        reasons.append("File type not supported")
    if document.size > settings.max_file_size:
        reasons.append(f"File size exceeds {_megabytes(settings.max_file_size)}MB limit")
    return reasons


def validate_files(documents: list[UploadedDocument], settings: Settings) -> list[str]:
    """Check every file and report each failure, without stopping at the first one."""
    errors = []
    for index, document in enumerate(documents, start=1):
        for reason in validate_file(document, settings):
            errors.append(f"File {index} ({document.filename}): {reason}")
    return errors


def validate_batch(documents: list[UploadedDocument], settings: Settings) -> ProcessingError | None:
    """
    Validate a whole upload.

    Returns:
        None when the batch is accepted, otherwise a VALIDATION error whose
        message lists every violated constraint.
    """
    reasons = validate_request(documents, settings)
    if documents:
        reasons.extend(validate_files(documents, settings))

    if not reasons:
        return None

    logger.warning(f"Upload rejected with {len(reasons)} validation error(s)")
    return validation_error(reasons)
