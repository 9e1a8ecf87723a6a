"""Tests for response parsing, fixture backend and backend selection."""

import base64
from types import SimpleNamespace

import httpx
import pytest

from lifepath.config import Settings
from lifepath.engine.executor import AgentExecutor
from lifepath.errors import BackendError, ParseError
from lifepath.llm.backends import FixtureBackend, GenerationBackend, ImageResult, LiveBackend
from lifepath.llm.client import parse_llm_json_response
from lifepath.llm.factory import get_backend
from lifepath.llm.fixtures import PLACEHOLDER_PNG


class TestParseLlmJsonResponse:
    """Tests for parse_llm_json_response."""

    def test_plain_json(self) -> None:
        assert parse_llm_json_response('{"a": 1}') == {"a": 1}

    def test_fenced_json(self) -> None:
        raw = '```json\n{"title": "An Offer"}\n```'

        assert parse_llm_json_response(raw) == {"title": "An Offer"}

    def test_bare_fence(self) -> None:
        assert parse_llm_json_response("```\n[1, 2]\n```") == [1, 2]

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_llm_json_response("Here is your story: {broken")

        assert exc_info.value.raw_text == "Here is your story: {broken"

    def test_empty_response_raises(self) -> None:
        with pytest.raises(ParseError, match="Empty"):
            parse_llm_json_response("   ")


class TestFixtureBackend:
    """Tests for canned responses."""

    def test_is_a_generation_backend(self) -> None:
        assert isinstance(FixtureBackend(), GenerationBackend)

    def test_text_by_label(self) -> None:
        backend = FixtureBackend()

        first = backend.complete_structured("s", "u", {}, label="lifeline_generation")
        second = backend.complete_structured("s", "u", {}, label="lifeline_generation")

        assert first["id"] == "lifeline-1"
        assert second["id"] == "lifeline-2"
        assert backend.calls == [
            ("text", "lifeline_generation"),
            ("text", "lifeline_generation"),
        ]

    def test_unknown_label_returns_empty_object(self) -> None:
        assert FixtureBackend().complete_structured("s", "u", {}, label="other") == {}

    def test_image(self) -> None:
        backend = FixtureBackend()

        result = backend.synthesize_image("A street", {}, label="image_generation")

        assert result.data == PLACEHOLDER_PNG
        assert "A street" in result.revised_prompt
        assert backend.calls == [("image", "image_generation")]


class TestImageResult:
    def test_inline_data_as_data_url(self) -> None:
        result = ImageResult(data=b"abc", mime_type="image/jpeg")

        assert result.as_url() == "data:image/jpeg;base64," + base64.b64encode(b"abc").decode()

    def test_remote_url(self) -> None:
        assert ImageResult(url="https://example.com/a.png").as_url() == "https://example.com/a.png"
        assert ImageResult().as_url() == ""


class TestGetBackend:
    """Tests for backend selection."""

    def test_fixture(self) -> None:
        assert isinstance(get_backend(Settings(backend="fixture")), FixtureBackend)

    def test_live_without_keys(self) -> None:
        with pytest.raises(RuntimeError, match="API_KEY"):
            get_backend(Settings(backend="live"))

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown backend"):
            get_backend(Settings(backend="openai"))


class TestLiveBackend:
    """Tests for LiveBackend error mapping, with the SDK clients stubbed."""

    def test_missing_key(self) -> None:
        with pytest.raises(BackendError, match="GEMINI_API_KEY") as exc_info:
            LiveBackend().synthesize_image("A street", {}, label="image_generation")

        assert exc_info.value.provider == "gemini"

    def test_transport_error_becomes_backend_error(self) -> None:
        """Test that a connection failure below the Gemini SDK is mapped, not leaked."""

        def generate_content(**kwargs):
            raise httpx.ConnectError("connection refused")

        backend = LiveBackend()
        backend._gemini = SimpleNamespace(
            models=SimpleNamespace(generate_content=generate_content)
        )

        with pytest.raises(BackendError, match="connection refused") as exc_info:
            backend.synthesize_image("A street", {}, label="image_generation")

        assert exc_info.value.provider == "gemini"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_transport_error_recorded_by_executor(self, store, session_id, make_agent) -> None:
        def generate_content(**kwargs):
            raise httpx.ReadTimeout("read timed out")

        backend = LiveBackend()
        backend._gemini = SimpleNamespace(
            models=SimpleNamespace(generate_content=generate_content)
        )
        agent = make_agent(
            agent_id="image_generation",
            kind="image",
            output_field="images",
            repeatable=True,
        )
        executor = AgentExecutor(store, backend)
        try:
            with pytest.raises(BackendError):
                executor.execute(agent, session_id)
        finally:
            executor.close()

        document = store.read(session_id)
        assert document.get("images") == []
        log = document["execution_logs"][0]
        assert log["success"] is False
        assert "read timed out" in log["error"]
