"""Analysis orchestrator: prepare image, call the vision model, structure the reply.

The model is asked for JSON but its answer is untrusted free text. Turning it
into four bounded percentages never fails: anything that could not be read
is reported through ``reasons`` and ``output_format`` instead.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any

from config import settings
from models import AnalysisResponse, StructuredResult
from normalization import normalize_percent
from preprocessing import preprocess
from vision_client import VisionClient

logger = logging.getLogger(__name__)

FIELDS = ("fullness", "stone", "plastic", "other")

# Label alternations per field, matched against lower-cased text
FIELD_LABELS: dict[str, str] = {
    "fullness": "fullness|fill",
    "stone": "stone|rock",
    "plastic": "plastic",
    "other": "other|misc|remaining",
}

# label, then anything on the same line that is not a digit or %, then the number
_FIELD_PATTERNS: dict[str, re.Pattern[str]] = {
    field: re.compile(rf"(?:{labels})[^\n\r\d%]*?(-?\d+(?:\.\d+)?)%?", re.ASCII)
    for field, labels in FIELD_LABELS.items()
}

EMPTY_REASON = "Model returned empty content."
REGEX_FALLBACK_REASON = "Output not valid JSON; attempted regex extraction."
JSON_INCOMPLETE_REASON = "JSON missing expected fields or contained non-numeric values."


@dataclass(frozen=True)
class DecodeOutcome:
    """Result of the strict JSON decode: either a value or a failure."""

    ok: bool
    value: Any = None


def analyze_image(image_bytes: bytes, client: VisionClient) -> AnalysisResponse:
    """Run the pipeline: prepare image -> vision model -> structured result.

    VisionServiceError from the client propagates to the caller.
    """
    start = time.monotonic()

    if settings.IMAGE_PREPROCESS:
        prepared = preprocess(image_bytes)
        logger.info("Prepared image: %d bytes -> %d bytes", len(image_bytes), len(prepared))
    else:
        prepared = image_bytes

    raw = client.analyze(prepared).strip()
    result = structure_model_output(raw)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        "Analysis completed in %dms: format=%s reasons=%d",
        elapsed_ms, result.output_format, len(result.reasons),
    )

    return AnalysisResponse(raw=raw, **result.model_dump())


def structure_model_output(raw: Any) -> StructuredResult:
    """Convert raw model text into four bounded percentages plus diagnostics."""
    if not isinstance(raw, str) or not raw.strip():
        return StructuredResult(output_format="empty", reasons=(EMPTY_REASON,))

    reasons: list[str] = []
    outcome = decode_json(raw)

    if outcome.ok:
        output_format = "json"
        candidates = _candidates_from_mapping(outcome.value)
    else:
        output_format = "regex"
        reasons.append(REGEX_FALLBACK_REASON)
        logger.warning("Model output is not JSON, falling back to patterns: %s", raw[:200])
        candidates = extract_with_patterns(raw)

    values = {field: normalize_percent(candidates.get(field)) for field in FIELDS}
    missing = [field for field in FIELDS if values[field] is None]

    if output_format == "json" and missing:
        reasons.append(JSON_INCOMPLETE_REASON)
    for field in missing:
        reasons.append(f"No {field} percentage could be extracted.")

    return StructuredResult(output_format=output_format, reasons=tuple(reasons), **values)


def decode_json(raw: str) -> DecodeOutcome:
    """Strictly decode raw text as JSON (NaN/Infinity literals are rejected).

    Integers are read as floats so oversized literals clamp instead of failing.
    """
    try:
        return DecodeOutcome(ok=True, value=json.loads(raw, parse_int=float, parse_constant=_reject_constant))
    except (ValueError, RecursionError):
        return DecodeOutcome(ok=False)


def extract_with_patterns(raw: str) -> dict[str, str | None]:
    """Find the first number after each field's label in free text."""
    lowered = raw.lower()
    candidates: dict[str, str | None] = {}
    for field, pattern in _FIELD_PATTERNS.items():
        match = pattern.search(lowered)
        candidates[field] = match.group(1) if match else None
    return candidates


def _candidates_from_mapping(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        return {}
    return {field: value.get(field) for field in FIELDS}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")
