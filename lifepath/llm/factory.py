"""Backend factory.

Resolves the configured backend name to an implementation, once, at startup.
"""

import logging

from lifepath.llm.backends import FixtureBackend, GenerationBackend, LiveBackend

logger = logging.getLogger(__name__)


def get_backend(settings) -> GenerationBackend:
    """Get the backend selected by settings.backend.

    Raises:
        ValueError: If the backend name is not recognized
        RuntimeError: If the live backend has no API key at all
    """
    name = settings.backend
    if name == "fixture":
        logger.info("Using fixture generation backend")
        return FixtureBackend()
    elif name == "live":
        if not settings.anthropic_api_key and not settings.gemini_api_key:
            raise RuntimeError(
                "Live backend needs ANTHROPIC_API_KEY and/or GEMINI_API_KEY"
            )
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not set; image generation will fail")
        logger.info("Using live generation backend (Anthropic + Gemini)")
        return LiveBackend(
            anthropic_api_key=settings.anthropic_api_key,
            gemini_api_key=settings.gemini_api_key,
            timeout=settings.backend_timeout,
        )
    else:
        raise ValueError(
            f"Unknown backend: '{name}'. Expected 'live' or 'fixture'."
        )
