"""Response parsing shared by the generation backends."""

import json
import logging
import re
from typing import Any

from lifepath.errors import ParseError

logger = logging.getLogger(__name__)

TEXT_MODEL = "claude-sonnet-4-5-20250929"
IMAGE_MODEL = "gemini-2.5-flash-image"

DEFAULT_MAX_TOKENS = 2000

# A whole response wrapped in ``` or ```json fences
_FENCED_RE = re.compile(r"^```[A-Za-z]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def parse_llm_json_response(raw_text: str) -> Any:
    """Parse the JSON value a model returned.

    Models are told to answer with bare JSON but sometimes fence it as a
    markdown code block anyway; the fence is dropped before parsing.

    Raises:
        ParseError: empty response, or the text is not valid JSON
    """
    content = (raw_text or "").strip()
    fenced = _FENCED_RE.match(content)
    if fenced:
        content = fenced.group(1).strip()

    if not content:
        raise ParseError("Empty response from model", raw_text=raw_text or "")

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Unparseable model response ({len(content)} chars): {e}")
        raise ParseError(f"Response is not valid JSON: {e}", raw_text=raw_text) from e
