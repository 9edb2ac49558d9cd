from __future__ import annotations
import json
import re
from typing import Any


_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json_block(text: str) -> Any:
    """
    Extract a JSON value from LLM response text.

    Handles the formats models return even when asked for strict JSON:
    - Raw JSON (object or array)
    - JSON wrapped in markdown code blocks
    - JSON embedded in other text

    Raises:
        ValueError: If no valid JSON can be extracted
    """
    if not text or not text.strip():
        raise ValueError("empty model response")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    code_block = _CODE_BLOCK_RE.search(text)
    if code_block:
        try:
            return json.loads(code_block.group(1))
        except json.JSONDecodeError:
            pass

    # Outermost object or array embedded in prose, whichever opens first
    spans = []
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        first = text.find(open_ch)
        last = text.rfind(close_ch)
        if first != -1 and last > first:
            spans.append((first, last))
    for first, last in sorted(spans):
        try:
            return json.loads(text[first : last + 1])
        except json.JSONDecodeError:
            pass

    raise ValueError("LLM did not return valid JSON.")
