"""Generation backends (Anthropic, Google Gemini, fixtures) and response parsing."""

from lifepath.llm.backends import (
    FixtureBackend,
    GenerationBackend,
    ImageResult,
    LiveBackend,
)
from lifepath.llm.client import parse_llm_json_response
from lifepath.llm.factory import get_backend

__all__ = [
    "FixtureBackend",
    "GenerationBackend",
    "ImageResult",
    "LiveBackend",
    "parse_llm_json_response",
    "get_backend",
]
