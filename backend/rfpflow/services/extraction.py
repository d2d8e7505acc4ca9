"""
Turn generator output into structured records.

The generator is unreliable: it wraps JSON in markdown fences, adds prose
around it, or leaves trailing commas. ``extract`` recovers what it can and
reports everything else as an ``ExtractionFailure`` instead of raising, so
callers decide how a failure surfaces. Field-level coercion helpers live here
too: wrong-typed optional values degrade to ``None``.
"""
import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any

from rfpflow.errors import CompletionError, ExtractionError, UpstreamQuotaError
from rfpflow.models.base import INT_COLUMN_MAX
from rfpflow.services.completion_client import TextCompletionClient

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
# Length of raw output kept in logs
_LOG_RAW_LEN = 2000


class FailureKind:
    MALFORMED_OUTPUT = "MALFORMED_OUTPUT"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    GENERATION_FAILED = "GENERATION_FAILED"


@dataclass(frozen=True)
class ExtractionFailure:
    kind: str
    raw_text: str = ""
    detail: str = ""


@dataclass(frozen=True)
class ExtractionResult:
    record: dict[str, Any] | None = None
    error: ExtractionFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self, what: str) -> dict[str, Any]:
        """Return the record or raise the error class matching the failure."""
        if self.error is None:
            return self.record
        if self.error.kind == FailureKind.QUOTA_EXCEEDED:
            raise UpstreamQuotaError(f"{what} is temporarily unavailable due to AI quota/rate limits")
        if self.error.kind == FailureKind.GENERATION_FAILED:
            raise CompletionError(f"{what} failed: {self.error.detail}")
        raise ExtractionError(f"Failed to parse AI response as JSON for {what}", raw_text=self.error.raw_text)


def _fix_trailing_commas(s: str) -> str:
    """Remove trailing commas before ] or } so JSON parses."""
    s = re.sub(r",\s*}", "}", s)
    s = re.sub(r",\s*]", "]", s)
    return s


def candidate_payload(text: str) -> str:
    """Strip code fences and surrounding prose, leaving the likely JSON object."""
    text = (text or "").strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
        text = _FENCE_CLOSE.sub("", text).strip()
    if not (text.startswith("{") and text.endswith("}")):
        first = text.find("{")
        last = text.rfind("}")
        if first != -1 and last > first:
            text = text[first : last + 1]
    return text


def parse_record(text: str) -> dict[str, Any]:
    """Parse generator text as a JSON object; raises ValueError when it is not one."""
    payload = candidate_payload(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        # Common LLM mistake
        data = json.loads(_fix_trailing_commas(payload))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def extract(client: TextCompletionClient, prompt: str, structured: bool = True) -> ExtractionResult:
    try:
        text = client.generate(prompt, structured=structured)
    except UpstreamQuotaError as e:
        logger.warning("Extraction: generator rate-limited: %s", e)
        return ExtractionResult(error=ExtractionFailure(FailureKind.QUOTA_EXCEEDED, detail=str(e)))
    except CompletionError as e:
        logger.warning("Extraction: generator failed: %s", e)
        return ExtractionResult(error=ExtractionFailure(FailureKind.GENERATION_FAILED, detail=str(e)))
    text = text or ""
    try:
        record = parse_record(text)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        logger.warning("Extraction: malformed generator output (%s): %s", e, text[:_LOG_RAW_LEN])
        return ExtractionResult(error=ExtractionFailure(FailureKind.MALFORMED_OUTPUT, raw_text=text, detail=str(e)))
    return ExtractionResult(record=record)


# --- Field coercion ---


def as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def as_int(value: Any) -> int | None:
    """Integral numbers only; values outside the Integer column range count as unset."""
    n = as_number(value)
    if n is None or abs(n) > INT_COLUMN_MAX:
        return None
    if isinstance(n, float):
        if not n.is_integer():
            return None
        return int(n)
    return n


def as_positive_int(value: Any) -> int | None:
    n = as_int(value)
    return n if n is not None and n >= 1 else None


def as_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def as_score(value: Any, low: float = 0.0, high: float = 100.0) -> float | None:
    n = as_number(value)
    if n is None or n < low or n > high:
        return None
    return n
