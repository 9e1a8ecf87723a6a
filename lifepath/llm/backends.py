"""Generation backends.

The executor talks to one GenerationBackend, chosen once at startup:

- LiveBackend: Anthropic Claude for structured text, Google Gemini for images
- FixtureBackend: canned, structurally valid documents; no network

Backends are plain blocking objects. Timeouts and cancellation are imposed
by the executor, which runs every call on a worker thread.
"""

import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from lifepath.errors import BackendError, ParseError
from lifepath.llm.client import DEFAULT_MAX_TOKENS, IMAGE_MODEL, TEXT_MODEL, parse_llm_json_response

logger = logging.getLogger(__name__)


@dataclass
class ImageResult:
    """Normalized image from any backend. Either data or url is set."""

    data: Optional[bytes] = None
    mime_type: str = "image/png"
    url: Optional[str] = None
    revised_prompt: Optional[str] = None

    def as_url(self) -> str:
        """A URL for the image; inline data is returned as a data: URL."""
        if self.data is not None:
            encoded = base64.b64encode(self.data).decode("ascii")
            return f"data:{self.mime_type};base64,{encoded}"
        return self.url or ""


@runtime_checkable
class GenerationBackend(Protocol):
    """Protocol for generation backend implementations."""

    def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        params: dict[str, Any],
        *,
        label: str = "",
    ) -> Any:
        """Return the parsed JSON value. Raises BackendError or ParseError."""
        ...

    def synthesize_image(
        self,
        prompt: str,
        params: dict[str, Any],
        *,
        label: str = "",
    ) -> ImageResult:
        """Raises BackendError."""
        ...


class LiveBackend:
    """Anthropic for text, Gemini for images.

    Both clients are created here, once, from explicit keys. A missing key
    only matters when that half of the backend is used.
    """

    def __init__(
        self,
        anthropic_api_key: Optional[str] = None,
        gemini_api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        import httpx
        from anthropic import Anthropic

        self._anthropic = None
        if anthropic_api_key:
            self._anthropic = Anthropic(
                api_key=anthropic_api_key,
                timeout=httpx.Timeout(
                    connect=30.0,
                    read=timeout or 300.0,
                    write=60.0,
                    pool=30.0,
                ),
                max_retries=0,  # retries are the caller's decision
            )

        self._gemini = None
        if gemini_api_key:
            from google import genai
            from google.genai import types

            http_options = None
            if timeout:
                http_options = types.HttpOptions(timeout=int(timeout * 1000))
            self._gemini = genai.Client(api_key=gemini_api_key, http_options=http_options)

    def complete_structured(self, system_prompt, user_prompt, params, *, label=""):
        import anthropic

        if self._anthropic is None:
            raise BackendError(
                "Text generation unavailable. Set ANTHROPIC_API_KEY.",
                provider="anthropic",
            )

        model = params.get("model", TEXT_MODEL)
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": params.get("max_tokens") or DEFAULT_MAX_TOKENS,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if params.get("temperature") is not None:
            kwargs["temperature"] = params["temperature"]
        if params.get("top_p") is not None:
            kwargs["top_p"] = params["top_p"]

        start_time = time.time()
        logger.info(
            f"[{label}] Anthropic call: model={model}, max_tokens={kwargs['max_tokens']}"
        )
        try:
            response = self._anthropic.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise BackendError(f"Anthropic request failed: {e}", provider="anthropic") from e

        duration_ms = int((time.time() - start_time) * 1000)
        raw_text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        logger.info(
            f"[{label}] Completed: {response.usage.input_tokens}+"
            f"{response.usage.output_tokens} tokens, {duration_ms}ms, "
            f"{len(raw_text):,} chars"
        )
        if response.stop_reason == "max_tokens":
            logger.warning(f"[{label}] Response truncated at max_tokens")

        return parse_llm_json_response(raw_text)

    def synthesize_image(self, prompt, params, *, label=""):
        import httpx
        from google.genai import errors, types

        if self._gemini is None:
            raise BackendError(
                "Image generation unavailable. Set GEMINI_API_KEY.",
                provider="gemini",
            )

        model = params.get("model", IMAGE_MODEL)
        config_kwargs: dict[str, Any] = {"response_modalities": ["TEXT", "IMAGE"]}
        if params.get("aspect_ratio"):
            config_kwargs["image_config"] = types.ImageConfig(
                aspect_ratio=params["aspect_ratio"]
            )

        start_time = time.time()
        logger.info(f"[{label}] Gemini image call: model={model}")
        try:
            response = self._gemini.models.generate_content(
                model=model,
                contents=prompt,
                config=types.GenerateContentConfig(**config_kwargs),
            )
        except (errors.APIError, httpx.HTTPError) as e:
            raise BackendError(f"Gemini request failed: {e}", provider="gemini") from e

        duration_ms = int((time.time() - start_time) * 1000)

        image_data = None
        mime_type = "image/png"
        text_parts = []
        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts or []:
                inline = getattr(part, "inline_data", None)
                if inline is not None and inline.data:
                    image_data = inline.data
                    mime_type = inline.mime_type or mime_type
                elif getattr(part, "text", None):
                    text_parts.append(part.text)

        if image_data is None:
            raise ParseError(
                f"[{label}] {model} returned no image",
                raw_text="".join(text_parts),
            )

        logger.info(f"[{label}] Image completed: {len(image_data):,} bytes, {duration_ms}ms")
        return ImageResult(
            data=image_data,
            mime_type=mime_type,
            revised_prompt="".join(text_parts).strip() or None,
        )


class FixtureBackend:
    """Canned responses for development and tests.

    Text responses are chosen by the label the executor passes (the agent
    id); unknown labels fall back to an empty object.
    """

    def __init__(self, fixtures=None):
        from lifepath.llm.fixtures import FixtureFactory

        self.fixtures = fixtures or FixtureFactory()
        self.calls: list[tuple[str, str]] = []

    def complete_structured(self, system_prompt, user_prompt, params, *, label=""):
        self.calls.append(("text", label))
        logger.debug(f"[{label}] Fixture text response")
        return self.fixtures.text_for(label)

    def synthesize_image(self, prompt, params, *, label=""):
        self.calls.append(("image", label))
        logger.debug(f"[{label}] Fixture image response")
        return self.fixtures.image_for(prompt)
