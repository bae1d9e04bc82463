"""Turns free-form analyzer output into an ``AnalysisResult``.

Analyzers are asked for a bare JSON object but regularly wrap it in a code
fence, surround it with prose, or answer in plain text. Extraction runs an
ordered chain of strategies; the first one that yields a JSON object wins:

  1. the whole text
  2. the body of a fenced code block (``json``-tagged fence first)
  3. the span from the first ``{`` to the last ``}``

If none succeeds, a lexical heuristic scans the text for trouble words.
``parse_analysis`` never raises.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from screen_assistant.catalogs import (
    KEYWORD_ACTIONS,
    KEYWORD_EXTENSIONS,
    KNOWN_APPS,
    TROUBLE_TOKENS,
    TROUBLE_TOKENS_LATIN,
    UNKNOWN_APP,
)

logger = logging.getLogger(__name__)

# Confidence words some analyzers return instead of a number
_CONFIDENCE_WORDS = {"high": 0.9, "medium": 0.6, "low": 0.3}
_ISSUE_FALLBACK_CONFIDENCE = 0.5
_NO_ISSUE_FALLBACK_CONFIDENCE = 0.2
_LEXICAL_ISSUE_CONFIDENCE = 0.4
_LEXICAL_ISSUE_TYPE = "detected"

# Alternate key names tolerated for each field, in priority order
_HAS_ISSUE_KEYS = ("has_issue", "has_error")
_ISSUE_TYPE_KEYS = ("issue_type", "error_type")
_ISSUE_MESSAGE_KEYS = ("issue_summary", "error_message")
_DETAIL_KEYS = (
    "detail",
    "detail_description",
    "image_detail",
    "image_description",
    "screen_detail",
)

_FENCE = "```"


@dataclass
class AnalysisResult:
    """Structured view of one analyzer response."""

    summary: str = ""
    app: str = UNKNOWN_APP
    detail: str = ""
    has_issue: bool = False
    issue_type: str = ""
    issue_message: str = ""
    suggestion: str = ""
    confidence: float = 0.0

    @property
    def issue_text(self) -> str:
        """Issue message, falling back to the summary."""
        return self.issue_message or self.summary


# ---------------------------------------------------------------------------
# Extraction strategies
# ---------------------------------------------------------------------------


def _load_object(text: str | None) -> dict[str, Any] | None:
    if text is None:
        return None
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def extract_whole(text: str) -> dict[str, Any] | None:
    return _load_object(text)


def _fence_body(rest: str) -> str | None:
    end = rest.find(_FENCE)
    if end == -1:
        return None
    body = rest[:end].strip()
    if body.startswith("json"):
        body = body[len("json") :].lstrip()
    return body


def extract_fenced(text: str) -> dict[str, Any] | None:
    """Parse the body of a code fence, preferring a ``json``-tagged one."""
    start = text.find(_FENCE + "json")
    if start != -1:
        return _load_object(_fence_body(text[start + len(_FENCE) + len("json") :]))

    start = text.find(_FENCE)
    if start != -1:
        return _load_object(_fence_body(text[start + len(_FENCE) :]))
    return None


def extract_braced(text: str) -> dict[str, Any] | None:
    """Parse the span from the first ``{`` to the last ``}``."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return _load_object(text[start : end + 1])


EXTRACTION_STRATEGIES: tuple[Callable[[str], dict[str, Any] | None], ...] = (
    extract_whole,
    extract_fenced,
    extract_braced,
)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Run the extraction chain and return the first JSON object found."""
    for strategy in EXTRACTION_STRATEGIES:
        data = strategy(text)
        if data is not None:
            return data
    return None


# ---------------------------------------------------------------------------
# Field interpretation
# ---------------------------------------------------------------------------


def _first_str(data: dict[str, Any], keys: tuple[str, ...], default: str = "") -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
    return default


def _first_bool(data: dict[str, Any], keys: tuple[str, ...]) -> bool | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, bool):
            return value
    return None


def parse_confidence(value: Any, has_issue: bool) -> float:
    """Interpret a confidence value, clamped to [0, 1].

    Accepts a number or one of "high", "medium", "low". Anything else falls
    back to 0.5 when an issue was flagged and 0.2 otherwise.
    """
    fallback = _ISSUE_FALLBACK_CONFIDENCE if has_issue else _NO_ISSUE_FALLBACK_CONFIDENCE
    if isinstance(value, bool):
        confidence = fallback
    elif isinstance(value, (int, float)):
        # json.loads accepts NaN and Infinity
        confidence = float(value) if math.isfinite(value) else fallback
    elif isinstance(value, str):
        confidence = _CONFIDENCE_WORDS.get(value.strip().lower(), fallback)
    else:
        confidence = fallback
    return max(0.0, min(1.0, confidence))


def result_from_json(data: dict[str, Any]) -> AnalysisResult:
    """Build a result from a parsed JSON object, tolerating key drift."""
    has_issue = _first_bool(data, _HAS_ISSUE_KEYS) or False
    issue_type = _first_str(data, _ISSUE_TYPE_KEYS)
    issue_message = _first_str(data, _ISSUE_MESSAGE_KEYS)
    suggestion = _first_str(data, ("suggestion",))
    confidence = parse_confidence(data.get("confidence"), has_issue)

    # Issue details without the flag mean the analyzer forgot to set it
    if not has_issue and (issue_type or issue_message or suggestion):
        has_issue = True

    return AnalysisResult(
        summary=_first_str(data, ("summary",)),
        app=_first_str(data, ("app",), UNKNOWN_APP),
        detail=_first_str(data, _DETAIL_KEYS),
        has_issue=has_issue,
        issue_type=issue_type,
        issue_message=issue_message,
        suggestion=suggestion,
        confidence=confidence,
    )


def contains_trouble(text: str) -> bool:
    lower = text.lower()
    return any(token in lower for token in TROUBLE_TOKENS_LATIN) or any(
        token in text for token in TROUBLE_TOKENS
    )


def extract_app_from_text(text: str) -> str:
    """Return the first known application named in ``text``."""
    for app in KNOWN_APPS:
        if app in text:
            return app
    return UNKNOWN_APP


def result_from_text(text: str) -> AnalysisResult:
    """Heuristic result for responses that contain no JSON object."""
    has_issue = contains_trouble(text)
    lines = text.splitlines()
    return AnalysisResult(
        summary=lines[0] if lines else text,
        app=extract_app_from_text(text),
        detail=text,
        has_issue=has_issue,
        issue_type=_LEXICAL_ISSUE_TYPE if has_issue else "",
        issue_message=text if has_issue else "",
        suggestion="",
        confidence=_LEXICAL_ISSUE_CONFIDENCE if has_issue else _NO_ISSUE_FALLBACK_CONFIDENCE,
    )


def parse_analysis(text: str) -> AnalysisResult:
    """Parse analyzer output into an ``AnalysisResult``. Never raises."""
    data = extract_json_object(text)
    if data is not None:
        return result_from_json(data)
    logger.debug("Analyzer response is not JSON, using lexical fallback")
    return result_from_text(text)


def extract_keywords(summary: str) -> list[str]:
    """Tag a summary with file extensions and action words it mentions.

    Tags come out in catalog order, extensions first; each catalog entry
    contributes at most once.
    """
    keywords = [ext for ext in KEYWORD_EXTENSIONS if ext in summary]
    keywords += [action for action in KEYWORD_ACTIONS if action in summary]
    return keywords
