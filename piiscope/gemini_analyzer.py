import base64
import json
import logging
import math
import os
import re
from pathlib import Path

import requests
import yaml

from piiscope.errors import (
    DetectionResult,
    ProcessingError,
    api_error,
    file_size_exceeded,
    parse_error,
    quota_exceeded,
)
from piiscope.file_types import resolve_mime_type
from piiscope.models import FileType, PIIFinding, PIIKind, Position, UploadedDocument

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_CONFIDENCE = 0.8

# The service returns no offsets; positions are spaced placeholders derived from the item index
POSITION_STRIDE = 10

# Optional language tag (json, text, ...) ends at whitespace or the payload's opening bracket
_FENCED_BLOCK = re.compile(r"```[ \t]*(?:[\w+-]+(?=[\s\[{]))?\s*(.*?)```", re.DOTALL)


class GeminiAnalyzer:
    """
    Detects PII in a PDF or image by sending the raw file to the Gemini
    ``generateContent`` API and decoding the JSON array it is asked to return.

    One instance is safe to share between concurrent file tasks: it holds only
    read-only configuration.
    """

    name = "remote"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        api_base: str | None = None,
        timeout_seconds: float = 60.0,
        max_file_size: int = 10 * 1024 * 1024,
        config_path: str | None = None,
    ):
        """Initialize with API key from parameter, environment, or raise error."""
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Google API key is required. Set GOOGLE_API_KEY environment variable."
            )

        self.model = model or DEFAULT_MODEL
        self.api_url = f"{(api_base or DEFAULT_API_BASE).rstrip('/')}/models/{self.model}:generateContent"
        self.timeout_seconds = timeout_seconds
        self.max_file_size = max_file_size

        self.pii_config = self._load_pii_config(config_path)

    def _load_pii_config(self, config_path: str | None = None) -> dict:
        """Load PII category descriptions from a YAML file."""
        if config_path is None:
            project_root = Path(__file__).parent.parent
            config_path = project_root / "pii_config.yaml"
        else:
            config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"PII config file not found at {config_path}, using default configuration")
            return self._get_default_config()

        try:
            with open(config_path) as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load PII config from {config_path}: {e}")
            return self._get_default_config()

        logger.info(f"Loaded PII configuration from {config_path}")
        return config

    def _get_default_config(self) -> dict:
        return {
            "categories": [
                {"type": "email", "label": "EMAIL ADDRESSES",
                 "example": "john@example.com, user.name@domain.org"},
                {"type": "phone", "label": "PHONE NUMBERS", "description": "any format",
                 "example": "(555) 123-4567, +1-555-123-4567, 555.123.4567"},
                {"type": "ssn", "label": "SOCIAL SECURITY NUMBERS",
                 "example": "XXX-XX-XXXX, XXX XX XXXX, XXXXXXXXX"},
                {"type": "credit_card", "label": "CREDIT CARD NUMBERS",
                 "description": "16-digit numbers, may have dashes/spaces"},
                {"type": "name", "label": "NAMES",
                 "description": "First Name + Last Name combinations, avoid common words"},
                {"type": "address", "label": "ADDRESSES",
                 "description": "Street addresses with numbers and street names"},
            ]
        }

    def _enabled_categories(self) -> list[dict]:
        categories = []
        for category in self.pii_config.get("categories", []):
            if not category.get("enabled", True):
                continue
            if category.get("type") not in {kind.value for kind in PIIKind}:
                logger.warning(f"Ignoring unknown PII category in config: {category.get('type')}")
                continue
            categories.append(category)
        return categories

    def _build_category_list_prompt(self) -> str:
        lines = []
        for number, category in enumerate(self._enabled_categories(), start=1):
            label = category.get("label") or category["type"].replace("_", " ").upper()
            description = category.get("description", "")
            example = category.get("example", "")

            if description and example:
                lines.append(f"{number}. {label} ({description}: {example})")
            elif example:
                lines.append(f"{number}. {label} (e.g., {example})")
            elif description:
                lines.append(f"{number}. {label} ({description})")
            else:
                lines.append(f"{number}. {label}")
        return "\n".join(lines)

    def build_prompt(self, file_type: FileType) -> str:
        categories = self._enabled_categories()
        type_names = " | ".join(f'"{category["type"]}"' for category in categories)

        return f"""You are an expert PII (Personally Identifiable Information) detection system.
Analyze the provided {file_type.value} file and identify ALL instances of the following PII types:

PII TYPES TO DETECT:
{self._build_category_list_prompt()}

RESPONSE FORMAT:
Return ONLY a valid JSON array with objects containing:
- type: {type_names}
- value: the exact PII value found
- confidence: number between 0-1 (detection confidence)
- context: surrounding text for context (max 100 characters)

IMPORTANT RULES:
- Return ONLY the JSON array, no other text
- Be conservative with names (avoid common placeholder names like "John Doe", "Test User")
- Include partial matches if confidence > 0.7
- If no PII found, return empty array: []

ANALYZE THE {file_type.value.upper()} NOW:"""

    def analyze(self, document: UploadedDocument, file_type: FileType) -> DetectionResult:
        """
        Analyze one file with Gemini.

        Args:
            document: Uploaded file with its raw bytes
            file_type: Classification of the file

        Returns:
            DetectionResult with findings, or a FILE_SIZE_EXCEEDED, QUOTA_EXCEEDED,
            API_ERROR or PARSE_ERROR failure
        """
        if document.size > self.max_file_size:
            return DetectionResult.failure(file_size_exceeded(self.max_file_size))

        mime_type = resolve_mime_type(document.filename, document.content_type, file_type)
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": self.build_prompt(file_type)},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(document.data).decode("utf-8"),
                            }
                        },
                    ]
                }
            ]
        }
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

        logger.info(f"Calling Gemini API ({self.model}) for {document.filename} as {mime_type}")
        try:
            response = requests.post(
                self.api_url, headers=headers, json=payload, timeout=self.timeout_seconds
            )
        except requests.RequestException as e:
            logger.error(f"Gemini API request failed for {document.filename}: {e}")
            if "quota" in str(e).lower():
                return DetectionResult.failure(quota_exceeded(e))
            return DetectionResult.failure(api_error(e))

        if response.status_code != 200:
            logger.error(f"Gemini API request failed with status {response.status_code}")
            return DetectionResult.failure(self._error_for_status(response))

        try:
            text = self._response_text(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected Gemini API response envelope: {e}")
            return DetectionResult.failure(api_error(e))

        result = self.parse_response(text)
        if result.ok:
            logger.info(f"Gemini analysis complete for {document.filename}, found {len(result.findings)} finding(s)")
        return result

    detect = analyze

    @staticmethod
    def _error_for_status(response: requests.Response) -> ProcessingError:
        detail = f"Gemini API request failed with status {response.status_code}: {response.text}"
        body = (response.text or "").lower()
        if response.status_code == 429 or "quota" in body or "resource_exhausted" in body:
            return quota_exceeded(detail)
        return api_error(detail)

    @staticmethod
    def _response_text(envelope: dict) -> str:
        parts = envelope["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)

    @staticmethod
    def _extract_json_text(text: str) -> str | None:
        """
        Find the JSON payload in a free-text response.

        Tried in order: a fenced code block, the whole response, the span from
        the first ``[`` to the last ``]``. None when nothing looks like JSON.
        """
        fenced = _FENCED_BLOCK.search(text)
        if fenced:
            return fenced.group(1).strip()

        stripped = text.strip()
        if not stripped:
            return None
        try:
            json.loads(stripped)
            return stripped
        except ValueError:
            pass

        start, end = stripped.find("["), stripped.rfind("]")
        if start != -1 and end > start:
            return stripped[start:end + 1]
        return None

    def parse_response(self, text: str) -> DetectionResult:
        json_text = self._extract_json_text(text or "")
        if json_text is None:
            logger.warning("No JSON found in Gemini response, treating as no findings")
            return DetectionResult.success([])

        try:
            payload = json.loads(json_text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse Gemini response: {e}")
            return DetectionResult.failure(parse_error(e))

        if not isinstance(payload, list):
            logger.warning("Invalid response format from Gemini, expected array")
            return DetectionResult.success([])

        findings = []
        for index, item in enumerate(payload):
            finding = self._decode_item(item, index)
            if finding is not None:
                findings.append(finding)
        return DetectionResult.success(findings)

    @staticmethod
    def _decode_item(item, index: int) -> PIIFinding | None:
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object item {index} in Gemini response")
            return None

        try:
            kind = PIIKind(str(item.get("type", "")).strip().lower())
        except ValueError:
            logger.warning(f"Skipping item {index} with unknown PII type: {item.get('type')!r}")
            return None

        value = item.get("value")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not value.strip():
            logger.warning(f"Skipping {kind.value} item {index} without a value")
            return None

        confidence = item.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = DEFAULT_CONFIDENCE
        else:
            try:
                confidence = float(confidence)
            except OverflowError:
                # integer beyond float range, still a number to clamp
                confidence = 1.0 if confidence > 0 else 0.0
            if not math.isfinite(confidence):
                confidence = DEFAULT_CONFIDENCE

        context = item.get("context")
        start = index * POSITION_STRIDE
        return PIIFinding(
            type=kind,
            value=value,
            confidence=confidence,
            position=Position(start=start, end=start + len(value)),
            context=context if isinstance(context, str) else "",
        )
