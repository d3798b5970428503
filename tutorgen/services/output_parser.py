"""
Model output parsing

Free text from the model is coerced into a JSON object by trying, in order:
1. a fenced ``` / ```json code block
2. the first balanced {...} span
3. the whole trimmed text
The first candidate that parses to an object wins. Validation happens separately.
"""

import json
import logging
import re
from typing import Any, Dict, Iterator, Optional

from .errors import OutputParseError

logger = logging.getLogger(__name__)

FENCED = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def extract_fenced_block(text: str) -> Optional[str]:
    match = FENCED.search(text)
    if not match:
        return None
    return match.group(1).strip()


def find_balanced_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} span, or None.
    Braces inside JSON strings (including escaped quotes) are ignored.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _candidates(text: str) -> Iterator[str]:
    fenced = extract_fenced_block(text)
    if fenced:
        yield fenced
    balanced = find_balanced_object(text)
    if balanced:
        yield balanced
    yield text.strip()


def parse_model_json(text: Optional[str]) -> Dict[str, Any]:
    """Parse model output into a dict or raise OutputParseError"""
    if not text or not text.strip():
        raise OutputParseError("Model returned empty output")

    for strategy, candidate in enumerate(_candidates(text), start=1):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            if strategy > 1:
                logger.debug(f"Recovered JSON with parse strategy {strategy}")
            return value

    raise OutputParseError(f"Could not parse JSON object from model output: {text[:200]!r}")
