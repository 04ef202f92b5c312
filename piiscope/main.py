import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from piiscope.analysis import collect_findings, create_summary, get_recommendations, get_risk_level, render_report
from piiscope.config import MB, Settings, get_settings
from piiscope.detectors import Detector, build_detector
from piiscope.file_processor import FileProcessor
from piiscope.models import UploadedDocument, UploadResponse
from piiscope.validation import validate_batch

VERSION = "0.1.0"

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.detector = build_detector(get_settings())
    logger.info(f"Using {app.state.detector.name} PII detector")
    yield


app = FastAPI(
    title="piiscope",
    description="Detect personally identifiable information in PDFs and images",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_detector(request: Request) -> Detector:
    detector = getattr(request.app.state, "detector", None)
    if detector is None:
        raise HTTPException(status_code=503, detail="PII detector is not initialised")
    return detector


def get_file_processor(
    detector: Detector = Depends(get_detector),
    settings: Settings = Depends(get_settings),
) -> FileProcessor:
    return FileProcessor(detector, timeout_seconds=settings.file_timeout_seconds)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "version": VERSION}


@app.get("/api/upload")
async def upload_info(settings: Settings = Depends(get_settings)):
    """Describe the upload endpoint and its limits."""
    return {
        "success": True,
        "message": "PII Detection File Upload API",
        "data": {
            "endpoint": "/api/upload",
            "method": "POST",
            "maxFiles": settings.max_files_per_request,
            "maxRequestSize": f"{round(settings.max_request_size / MB)}MB",
            "maxFileSize": f"{round(settings.max_file_size / MB)}MB",
            "supportedFormats": ["PDF", "JPG", "JPEG", "PNG", "GIF", "BMP", "WebP"],
        },
    }


@app.post("/api/upload", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_files(
    files: list[UploadFile] | None = File(default=None),
    processor: FileProcessor = Depends(get_file_processor),
    settings: Settings = Depends(get_settings),
):
    """
    Analyze uploaded PDFs and images for PII.

    Args:
        files: Uploaded files (multipart field ``files``, repeated)

    Returns:
        UploadResponse with per-file results, summary, risk level, recommendations
        and a markdown report

    Raises:
        HTTPException: 400 when the batch fails validation; no file is analyzed then
    """
    documents = []
    for upload in files or []:
        documents.append(
            UploadedDocument(
                filename=upload.filename or "",
                content_type=upload.content_type or "",
                data=await upload.read(),
            )
        )
    logger.info(f"Upload request received with {len(documents)} file(s)")

    error = validate_batch(documents, settings)
    if error is not None:
        logger.error(f"Upload failed validation: {error.message}")
        raise HTTPException(status_code=400, detail=error.message)

    results = await processor.process_files(documents)
    summary = create_summary(results)

    message = f"Processed {len(results)} file(s) successfully"
    if summary.failed_files:
        message += f" ({summary.failed_files} failed)"

    return UploadResponse(
        success=True,
        message=message,
        data=results,
        summary=summary,
        risk_level=get_risk_level(collect_findings(results)),
        recommendations=get_recommendations(summary),
        report=render_report(summary, results),
    )
