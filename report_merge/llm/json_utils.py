"""JSON extraction and repair for oracle responses.

Classifier and critic replies are expected to be a bare JSON array, but
models regularly wrap it in code fences, add a sentence of commentary or
leave a trailing comma. This module finds the JSON fragment and repairs it
before parsing.
"""

from __future__ import annotations

import json
from typing import Any

from json_repair import repair_json

_FENCE_PREFIXES = ("```json", "```JSON", "```")


def strip_code_fences(text: str) -> str:
    """Remove one leading ```/```json fence and one trailing ``` fence."""

    text = text.strip()
    for prefix in _FENCE_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_json_response(text: str) -> Any:
    """Extract and repair JSON content from LLM response text.

    Locates the outermost array or object (whichever opens first), repairs
    common formatting issues and parses it.

    Raises:
        ValueError: If the text is not a string or has no JSON delimiters
        json.JSONDecodeError: If the repaired text still cannot be parsed

    Example:
        >>> parse_json_response('Result: [{"id": 1}] done')
        [{'id': 1}]
    """
    if not isinstance(text, str):
        raise ValueError(f"Expected string input, got {type(text)}")

    text = strip_code_fences(text)

    start_obj = text.find("{")
    start_arr = text.find("[")
    if start_obj == -1 and start_arr == -1:
        raise ValueError("Response text does not contain JSON object or array delimiters.")

    if start_obj == -1 or (start_arr != -1 and start_arr < start_obj):
        start, end_char = start_arr, "]"
    else:
        start, end_char = start_obj, "}"

    end = text.rfind(end_char)
    if end == -1 or end <= start:
        raise ValueError("Response text does not contain matching JSON delimiters.")

    repaired = repair_json(text[start : end + 1])
    return json.loads(repaired)
