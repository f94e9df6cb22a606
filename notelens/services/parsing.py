"""
Response Parsing

Extracts a JSON document from a language-model reply. Models tend to wrap
JSON in Markdown code fences or prefix it with invisible characters.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from notelens.errors import MalformedResponse

logger = logging.getLogger(__name__)

_LEADING_INVISIBLE = re.compile("^[\u200b\u00a0]+")
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_response_json(text: str, provider: str = "remote") -> Any:
    """
    Parse a JSON value out of a model reply.

    Raises:
        MalformedResponse: If no valid JSON remains after cleanup.
    """
    cleaned = _LEADING_INVISIBLE.sub("", text.strip())
    cleaned = _FENCE.sub("", cleaned.strip()).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable model reply (%d chars): %s", len(text), e)
        raise MalformedResponse("Invalid JSON format", provider=provider) from e
