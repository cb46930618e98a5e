"""
Recover a JSON object from free-form model output.

Models are asked for "JSON only" but routinely wrap it in prose or a fenced
code block.  ``extract_json`` tries, in order:

1. the whole text,
2. the first fenced block (```json ... ``` or ``` ... ```),
3. the greedy span from the first ``{`` to the last ``}``.

A miss returns None; callers substitute deterministic data instead of failing.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

_FENCE_RE = re.compile(r'```(?:json)?\s*([\s\S]*?)```', re.IGNORECASE)


def _loads_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def extract_json(text: Any) -> Optional[Dict[str, Any]]:
    """Return the JSON object embedded in ``text``, or None. Never raises."""
    if not isinstance(text, str) or not text.strip():
        return None

    parsed = _loads_object(text.strip())
    if parsed is not None:
        return parsed

    fence = _FENCE_RE.search(text)
    if fence:
        parsed = _loads_object(fence.group(1).strip())
        if parsed is not None:
            return parsed

    start = text.find('{')
    end = text.rfind('}')
    if start != -1 and end > start:
        return _loads_object(text[start:end + 1])

    return None
