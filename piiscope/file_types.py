from pathlib import PurePath

from piiscope.models import FileType

ACCEPTED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
}

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "webp"}
ALLOWED_EXTENSIONS = {"pdf"} | IMAGE_EXTENSIONS

EXTENSION_MIME_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
}


def get_extension(filename: str) -> str:
    """Lower-cased extension without the dot, or an empty string."""
    return PurePath(filename or "").suffix.lstrip(".").lower()


def classify_file(filename: str, content_type: str | None) -> FileType:
    """Classify by MIME type first, then by extension; anything undetermined is an image."""
    mime = (content_type or "").lower()
    if mime == "application/pdf":
        return FileType.PDF
    if mime.startswith("image/"):
        return FileType.IMAGE

    extension = get_extension(filename)
    if extension == "pdf":
        return FileType.PDF
    return FileType.IMAGE


def resolve_mime_type(filename: str, content_type: str | None, file_type: FileType) -> str:
    """MIME type to declare to the remote service for a classified file."""
    if file_type == FileType.PDF:
        return "application/pdf"
    mime = (content_type or "").lower()
    if mime.startswith("image/"):
        return mime
    return EXTENSION_MIME_TYPES.get(get_extension(filename), "image/jpeg")
