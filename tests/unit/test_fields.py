"""Tests for session field parsing."""

import pytest

from lifepath.agents.fields import (
    APPEND_COLLECTIONS,
    SessionField,
    WriteMode,
    parse_field_path,
    parse_output_field,
)
from lifepath.agents.schemas import InputField
from lifepath.errors import AgentConfigError
from lifepath.sessions.paths import MISSING


class TestSessionField:
    """Tests for the SessionField enum."""

    def test_append_collections(self) -> None:
        """Test that the five artifact collections append."""
        assert {f.value for f in APPEND_COLLECTIONS} == {
            "lifelines", "pivotal_moments", "choices", "image_prompts", "images",
        }
        for field in APPEND_COLLECTIONS:
            assert field.write_mode is WriteMode.APPEND

    def test_singular_artifacts_set(self) -> None:
        for field in (
            SessionField.HISTORICAL_CONTEXT,
            SessionField.PERSONA_OPTIONS,
            SessionField.SELECTED_PERSONA,
        ):
            assert field.write_mode is WriteMode.SET

    def test_fixed_sections_not_writable(self) -> None:
        assert not SessionField.INPUT.is_agent_writable
        assert not SessionField.METADATA.is_agent_writable
        assert SessionField.LIFELINES.is_agent_writable


class TestParseFieldPath:
    """Tests for parse_field_path / parse_output_field."""

    def test_parses_root_and_subpath(self) -> None:
        ref = parse_field_path("input.date")

        assert ref.root is SessionField.INPUT
        assert ref.subpath == ("date",)
        assert ref.path == "input.date"
        assert ref.name == "date"

    def test_free_form_artifact_subpath_allowed(self) -> None:
        ref = parse_field_path("historical_context.country")

        assert ref.root is SessionField.HISTORICAL_CONTEXT
        assert ref.name == "country"

    def test_unknown_root_fails(self) -> None:
        with pytest.raises(AgentConfigError, match="Unknown session field 'lastChoice'"):
            parse_field_path("lastChoice")

    def test_unknown_key_in_structured_section_fails(self) -> None:
        with pytest.raises(AgentConfigError):
            parse_field_path("config.numberOfPersonaOptions")

    def test_known_config_key(self) -> None:
        ref = parse_field_path("config.number_of_persona_options")

        assert ref.root is SessionField.CONFIG

    def test_output_must_be_whole_writable_field(self) -> None:
        assert parse_output_field("lifelines") is SessionField.LIFELINES
        with pytest.raises(AgentConfigError):
            parse_output_field("lifelines.0")
        with pytest.raises(AgentConfigError):
            parse_output_field("input")


class TestFieldRefRead:
    """Tests for reading session values through a parsed path."""

    document = {
        "input": {"date": "1444-03-15"},
        "selected_persona": None,
        "historical_context": {"country": "Republic of Florence"},
    }

    def test_reads_nested_value(self) -> None:
        assert parse_field_path("input.date").read(self.document) == "1444-03-15"
        assert parse_field_path("historical_context").read(self.document) == {
            "country": "Republic of Florence"
        }

    def test_absent_is_missing(self) -> None:
        assert parse_field_path("input.location").read(self.document) is MISSING
        assert parse_field_path("lifelines").read(self.document) is MISSING

    def test_stored_none_is_returned(self) -> None:
        assert parse_field_path("selected_persona").read(self.document) is None

    def test_through_null_intermediate_is_missing(self) -> None:
        assert parse_field_path("selected_persona.name").read(self.document) is MISSING


class TestInputField:
    def test_ref_parsed_from_path(self) -> None:
        field = InputField(path="historical_context.country")

        assert field.ref.root is SessionField.HISTORICAL_CONTEXT
        assert field.ref.name == "country"

    def test_unknown_path_rejected(self) -> None:
        with pytest.raises(ValueError, match="lastChoice"):
            InputField(path="lastChoice")
