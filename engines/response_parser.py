"""
Parsing of free-text answers from the vision oracle.

The model is asked for JSON but does not always comply, so every parser
tries an ordered list of extractions and ends in one fixed default:
    1. JSON object (code fences stripped, outermost {...} slice)
    2. regex fallbacks over the raw text
    3. default
"""
import json
import re
from typing import Any, Dict, Optional, Tuple

from core.models import Candidate, Confidence, LocatorTier

NO_WIDGET_PHRASE = "no chatbot widget found"

VERDICT_KEYS = ("open", "widget_open", "chatbot_detected", "chatbot_open", "visible")

_YES_NO_PATTERN = re.compile(r"^\W*(yes|no|true|false)\b", re.IGNORECASE)
_VERDICT_FIELD_PATTERN = re.compile(
    r"(?:open|visible|detected)\W{0,3}\s*[:=]\s*\"?(yes|no|true|false)\b", re.IGNORECASE
)
_XY_PATTERN = re.compile(
    r"\bx\W{0,3}\s*[:=]\s*[\"']?(-?\d+(?:\.\d+)?)\W+y\W{0,3}\s*[:=]\s*[\"']?(-?\d+(?:\.\d+)?)",
    re.IGNORECASE
)
_TUPLE_PATTERN = re.compile(r"\(\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*\)")
_OUT_OF_100_PATTERN = re.compile(r"\b(\d{1,3})\s*(?:/|out of)\s*100\b", re.IGNORECASE)
_SCORE_FIELD_PATTERN = re.compile(r"\bscore\W{0,3}\s*(?:[:=]|of|is)?\s*(\d{1,3})\b", re.IGNORECASE)

_TRUTHY = {"yes", "true"}


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Pull a JSON object out of a model reply, or None."""
    if not text:
        return None
    text = text.strip()

    if text.startswith('```'):
        lines = [line for line in text.split('\n') if not line.startswith('```')]
        text = '\n'.join(lines).strip()

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    start = text.find('{')
    end = text.rfind('}') + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(text[start:end])
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("yes", "true", "1"):
            return True
        if lowered in ("no", "false", "0"):
            return False
    return None


def parse_verdict(text: Optional[str]) -> bool:
    """Was a chat widget open? Defaults to False."""
    data = extract_json_object(text)
    if data:
        for key in VERDICT_KEYS:
            if key in data:
                verdict = _as_bool(data[key])
                if verdict is not None:
                    return verdict

    if not text:
        return False

    if NO_WIDGET_PHRASE in text.lower():
        return False

    match = _YES_NO_PATTERN.search(text) or _VERDICT_FIELD_PATTERN.search(text)
    if match:
        return match.group(1).lower() in _TRUTHY

    return False


def parse_coordinates(text: Optional[str], viewport: Tuple[int, int]) -> Optional[Candidate]:
    """A launcher point proposed by the oracle, or None."""
    point = None

    data = extract_json_object(text)
    if data:
        if data.get("found") is False:
            return None
        try:
            point = (float(data["x"]), float(data["y"]))
        except (KeyError, TypeError, ValueError):
            point = None

    if point is None and text:
        match = _XY_PATTERN.search(text) or _TUPLE_PATTERN.search(text)
        if match:
            point = (float(match.group(1)), float(match.group(2)))

    if point is None:
        return None

    x, y = point
    width, height = viewport
    if not (0 <= x <= width and 0 <= y <= height):
        return None

    return Candidate(
        x=x,
        y=y,
        source_strategy=LocatorTier.VISUAL,
        confidence=Confidence.LOW,
        label="oracle",
    )


def parse_score(text: Optional[str]) -> Optional[int]:
    """Welcome message score (1-100), or None when the reply has none."""
    score = None

    data = extract_json_object(text)
    if data and data.get("score") is not None:
        try:
            score = int(round(float(data["score"])))
        except (TypeError, ValueError):
            score = None

    if score is None and text:
        match = _OUT_OF_100_PATTERN.search(text) or _SCORE_FIELD_PATTERN.search(text)
        if match:
            score = int(match.group(1))

    if score is None:
        return None
    return max(1, min(100, score))
