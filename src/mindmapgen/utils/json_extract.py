"""Pull a JSON object out of free-form model output.

Models asked for "only JSON" still wrap it in prose or markdown fences now and then.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from mindmapgen.logging import get_logger

logger = get_logger(__name__)

_FENCE_JSON = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_FENCE_ANY = re.compile(r"```\s*(.*?)\s*```", re.DOTALL)
_OUTERMOST_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Extract one JSON object from `text`.

    Strategy, strict to lenient:
        1. The whole text is JSON.
        2. The first markdown code block (```json first, then any ```).
        3. The outermost ``{...}`` span.

    Returns ``None`` instead of raising when nothing parses to an object.
    """

    if not text:
        return None

    cleaned = text.strip()
    candidates: list[str] = [cleaned]
    for pattern in (_FENCE_JSON, _FENCE_ANY, _OUTERMOST_OBJECT):
        m = pattern.search(cleaned)
        if m:
            candidates.append(m.group(1) if m.groups() else m.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    logger.debug("extract_json_object: no JSON object found", extra={"text_len": len(cleaned)})
    return None
