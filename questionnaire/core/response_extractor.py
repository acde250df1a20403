"""
Response Extractor - Recover a JSON object from free-form model output

Responsibilities:
- Decode the structured payload the prompt asked for
- Tolerate markdown fences, leading chatter and trailing text
- Return None on any failure (never raise)

Recovery order (first success wins):
1. Fenced block: ```json ... ``` (or a bare ``` fence)
2. Balanced braces: first '{', scan forward tracking depth (string literals
   and escapes respected), parse up to the matching '}'
3. Whole text as JSON

Only JSON objects count as success; arrays, strings and numbers yield None.

Contract:
    extract_json(text) -> Optional[dict]
    extract_decision(text) -> Optional[Decision]
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from questionnaire.contracts import Decision

logger = logging.getLogger(__name__)

FENCED_BLOCK_PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)


def _loads_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _from_fenced_block(text: str) -> Optional[Dict[str, Any]]:
    for match in FENCED_BLOCK_PATTERN.finditer(text):
        parsed = _loads_object(match.group(1).strip())
        if parsed is not None:
            return parsed
    return None


def _balanced_object_span(text: str) -> Optional[str]:
    """
    Substring from the first '{' to its matching '}'

    Braces inside JSON string literals are ignored.
    """
    start = text.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False

    for position in range(start, len(text)):
        char = text[position]

        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return text[start:position + 1]

    # Unbalanced: no matching close brace
    return None


def _from_balanced_braces(text: str) -> Optional[Dict[str, Any]]:
    span = _balanced_object_span(text)
    if span is None:
        return None
    return _loads_object(span)


def extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Recover the first JSON object from model output.

    Args:
        text: Raw model output

    Returns:
        dict if any recovery stage succeeds, None otherwise

    Examples:
        >>> extract_json('Sure! ```json\\n{"action": "clarify"}\\n```')
        {'action': 'clarify'}

        >>> extract_json('Here you go: {"action": "complete"} hope that helps')
        {'action': 'complete'}

        >>> extract_json('I am not sure what you mean') is None
        True
    """
    if not isinstance(text, str) or not text.strip():
        return None

    for stage in (_from_fenced_block, _from_balanced_braces):
        parsed = stage(text)
        if parsed is not None:
            return parsed

    parsed = _loads_object(text.strip())
    if parsed is None:
        logger.warning(f"Could not recover JSON from model output ({len(text)} chars)")
        logger.debug(f"Unparsable model output: {text[:200]}")
    return parsed


def extract_decision(text: Optional[str]) -> Optional[Decision]:
    """Recover a Decision, or None when no JSON object is present"""
    payload = extract_json(text)
    if payload is None:
        return None
    return Decision.from_payload(payload)
