"""
Decides whether an upstream reply is JSON or plain text.

Apps Script answers with JSON from ContentService, but login pages, quota
errors and doGet UIs come back as HTML. The declared content-type is trusted
first; anything else is parsed opportunistically.
"""

import json
import math
from dataclasses import dataclass
from typing import Any

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class JsonBody:
    value: Any


@dataclass(frozen=True)
class TextBody:
    text: str


def _decode(body):
    if isinstance(body, str):
        return body
    return (body or b"").decode("utf-8", errors="replace")


def _reject_constant(name):
    # NaN and Infinity are not valid JSON
    raise ValueError(f"Unsupported JSON constant: {name}")


def _finite_float(literal):
    # 1e400 parses to inf, which cannot be written back as JSON
    value = float(literal)
    if not math.isfinite(value):
        raise ValueError(f"Number out of range: {literal}")
    return value


def classify(body, declared_content_type):
    """
    Classifies a response body.

    Args:
        body: Raw response bytes (or an already decoded string).
        declared_content_type: The Content-Type header sent with the body, may be None.

    Returns:
        JsonBody with the parsed value, or TextBody with the decoded text.
    """
    text = _decode(body)
    declared_json = JSON_CONTENT_TYPE in (declared_content_type or "").lower()

    # An empty body labelled as JSON counts as an empty object
    candidate = (text or "{}") if declared_json else text
    try:
        return JsonBody(json.loads(candidate, parse_float=_finite_float, parse_constant=_reject_constant))
    except ValueError:
        return TextBody(text)
