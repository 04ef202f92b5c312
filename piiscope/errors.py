"""Processing errors shared by the validator, the detectors and the file processor.

Expected failures (quota, size, unparseable responses, service errors) are not
raised. Detectors return a :class:`DetectionResult` holding either findings or
a :class:`ProcessingError`, and the file processor turns failures into regular
``success=False`` results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from piiscope.models import PIIFinding


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    FILE_SIZE_EXCEEDED = "FILE_SIZE_EXCEEDED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    PARSE_ERROR = "PARSE_ERROR"
    API_ERROR = "API_ERROR"


class ProcessingError(BaseModel):
    """A typed processing failure. ``details`` keeps the underlying cause and is never serialized."""
    code: ErrorCode
    message: str
    details: Any = Field(default=None, exclude=True)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def create_error(code: ErrorCode, message: str, details: Any = None) -> ProcessingError:
    return ProcessingError(code=code, message=message, details=details)


def validation_error(reasons: list[str]) -> ProcessingError:
    if len(reasons) == 1:
        message = reasons[0]
    else:
        message = "File validation failed:\n" + "\n".join(reasons)
    return create_error(ErrorCode.VALIDATION, message, details=list(reasons))


def quota_exceeded(details: Any = None) -> ProcessingError:
    return create_error(
        ErrorCode.QUOTA_EXCEEDED,
        "API quota exceeded. Please check your billing and usage limits.",
        details,
    )


def file_size_exceeded(max_size: int) -> ProcessingError:
    return create_error(
        ErrorCode.FILE_SIZE_EXCEEDED,
        f"File size exceeds {round(max_size / (1024 * 1024))}MB limit",
    )


def parse_error(details: Any = None) -> ProcessingError:
    return create_error(ErrorCode.PARSE_ERROR, "Failed to parse AI response", details)


def api_error(details: Any = None) -> ProcessingError:
    return create_error(ErrorCode.API_ERROR, "AI service temporarily unavailable", details)


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one detector call: findings on success, a ProcessingError otherwise."""

    findings: list[PIIFinding] = field(default_factory=list)
    error: ProcessingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, findings: list[PIIFinding]) -> "DetectionResult":
        return cls(findings=list(findings))

    @classmethod
    def failure(cls, error: ProcessingError) -> "DetectionResult":
        return cls(error=error)
