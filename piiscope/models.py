import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_CONTEXT_LENGTH = 100


class PIIKind(str, Enum):
    """Closed set of PII categories, in canonical reporting order."""
    EMAIL = "email"
    PHONE = "phone"
    SSN = "ssn"
    CREDIT_CARD = "credit_card"
    NAME = "name"
    ADDRESS = "address"


class FileType(str, Enum):
    PDF = "pdf"
    IMAGE = "image"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CamelModel(BaseModel):
    """Base model serializing to camelCase JSON while keeping snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def clamp_confidence(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Position(CamelModel):
    """Character offsets of a finding. Remote findings carry placeholder offsets."""
    start: int = Field(ge=0)
    end: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "Position":
        if self.end < self.start:
            raise ValueError("position end must not precede start")
        return self


class PIIFinding(CamelModel):
    """One detected instance of sensitive data."""
    type: PIIKind
    value: str
    confidence: float  # always within [0.0, 1.0]
    position: Position
    context: str = ""  # surrounding text, at most 100 chars

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                value = float(value)
            except OverflowError:
                value = 1.0 if value > 0 else 0.0
            if math.isfinite(value):
                return clamp_confidence(value)
        raise ValueError("confidence must be a finite number")

    @field_validator("context", mode="before")
    @classmethod
    def _truncate_context(cls, value):
        if value is None:
            return ""
        return str(value)[:MAX_CONTEXT_LENGTH]


class FileAnalysisResult(CamelModel):
    """Outcome of analyzing one uploaded file; exactly one per accepted file."""
    filename: str
    file_type: FileType
    findings: list[PIIFinding] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=utc_now)
    success: bool
    error: str | None = None
    processing_time_ms: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_outcome(self) -> "FileAnalysisResult":
        if self.success and self.error is not None:
            raise ValueError("successful results must not carry an error")
        if not self.success:
            if not self.error:
                raise ValueError("failed results must carry an error message")
            if self.findings:
                raise ValueError("failed results must not carry findings")
        return self

    @classmethod
    def succeeded(
        cls, filename: str, file_type: FileType, findings: list[PIIFinding], processing_time_ms: int
    ) -> "FileAnalysisResult":
        return cls(
            filename=filename,
            file_type=file_type,
            findings=findings,
            success=True,
            processing_time_ms=processing_time_ms,
        )

    @classmethod
    def failed(
        cls, filename: str, file_type: FileType, error: str, processing_time_ms: int
    ) -> "FileAnalysisResult":
        return cls(
            filename=filename,
            file_type=file_type,
            findings=[],
            success=False,
            error=error,
            processing_time_ms=processing_time_ms,
        )


class FileError(CamelModel):
    filename: str
    error: str


class AnalysisSummary(CamelModel):
    """Aggregate view over a batch of FileAnalysisResult."""
    total_files: int
    successful_files: int
    failed_files: int
    total_pii_found: int = Field(alias="totalPIIFound")
    findings_by_type: dict[PIIKind, int] = Field(default_factory=dict)
    analysis_complete: bool = True
    has_errors: bool
    errors: list[FileError] = Field(default_factory=list)
    processing_time_ms: int = 0

    @model_validator(mode="after")
    def _check_counts(self) -> "AnalysisSummary":
        if self.total_files != self.successful_files + self.failed_files:
            raise ValueError("total_files must equal successful_files + failed_files")
        if self.total_pii_found != sum(self.findings_by_type.values()):
            raise ValueError("total_pii_found must equal the sum of findings_by_type")
        if self.has_errors != (self.failed_files > 0):
            raise ValueError("has_errors must be set exactly when a file failed")
        return self


class UploadedDocument(BaseModel):
    """A file received at the upload boundary."""
    filename: str
    content_type: str = ""
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class UploadResponse(CamelModel):
    """Response from the /api/upload endpoint."""
    success: bool
    message: str
    data: list[FileAnalysisResult]
    summary: AnalysisSummary
    risk_level: RiskLevel
    recommendations: list[str]
    report: str  # markdown
    timestamp: datetime = Field(default_factory=utc_now)
