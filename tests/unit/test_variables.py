"""Tests for prompt variable building."""

import json
import random

from lifepath.engine.variables import (
    StoryVariables,
    build_variables,
    input_variables,
    stringify,
)


def _session(**sections):
    session = {
        "metadata": {"session_id": "s1"},
        "input": {"date": "1444-03-15", "location": "Florence, Italy"},
        "config": {"number_of_persona_options": 3},
    }
    session.update(sections)
    return session


class TestInputVariables:
    """Tests for stringify / input_variables / build_variables."""

    def test_stringify(self) -> None:
        assert stringify("text") == "text"
        assert stringify(5) == "5"
        assert json.loads(stringify({"a": [1, 2]})) == {"a": [1, 2]}

    def test_keyed_by_last_segment(self) -> None:
        variables = input_variables(
            {"input.date": "1444", "historical_context": {"country": "Florence"}}
        )

        assert variables["date"] == "1444"
        assert json.loads(variables["historical_context"]) == {"country": "Florence"}

    def test_extra_overrides_hooks(self) -> None:
        variables = build_variables(
            {"input.date": "1444"},
            {},
            hooks=[lambda session: {"date": "hook", "other": "h"}],
            extra={"other": "extra"},
        )

        assert variables == {"date": "hook", "other": "extra"}


class TestStoryVariables:
    """Tests for the life-story variable hook."""

    def test_first_lifeline_starts_at_birth(self) -> None:
        variables = StoryVariables(random.Random(1))(_session())

        assert variables["expected_start_age"] == "0"
        assert variables["previous_lifeline_section"] == ""
        assert variables["age_range_warning"] == ""
        assert "first lifeline" in variables["continuation_context"]
        assert variables["moment_number"] == "1"
        assert variables["number_of_options"] == "3"

    def test_continuation_after_choice(self) -> None:
        """Test that the next segment starts where the last one ended."""
        session = _session(
            lifelines=[{"id": "l1", "start_age": 0, "end_age": 18, "narrative": "Youth"}],
            pivotal_moments=[{"id": "m1", "title": "An Offer", "age": 18}],
            choices=[{"artifact_id": "m1", "option_id": "c1", "option_title": "Accept"}],
        )

        variables = StoryVariables(random.Random(1))(session)

        assert variables["expected_start_age"] == "18"
        assert variables["moment_number"] == "2"
        assert variables["previous_choice"] == "Accept"
        assert "18 years old" in variables["continuation_context"]
        assert '"An Offer"' in variables["continuation_context"]
        assert "start at age 18" in variables["age_range_warning"]
        assert variables["previous_lifeline_section"].startswith("Previous lifelines:")

    def test_lifelines_without_choice_not_continuation(self) -> None:
        session = _session(lifelines=[{"id": "l1", "end_age": 10}])

        variables = StoryVariables(random.Random(1))(session)

        assert variables["current_age"] == "10"
        assert "first lifeline" in variables["continuation_context"]

    def test_years_to_advance_brackets(self) -> None:
        story = StoryVariables(random.Random(42))

        for _ in range(20):
            assert 10 <= story.years_to_advance(5) <= 15
            assert 7 <= story.years_to_advance(25) <= 12
            assert 5 <= story.years_to_advance(60) <= 10

    def test_seeded_rng_is_repeatable(self) -> None:
        first = StoryVariables(random.Random(3))(_session())
        second = StoryVariables(random.Random(3))(_session())

        assert first["years_to_advance"] == second["years_to_advance"]

    def test_non_numeric_age_falls_back(self) -> None:
        session = _session(lifelines=[{"id": "l1", "end_age": "unknown"}])

        variables = StoryVariables(random.Random(1))(session)

        assert variables["current_age"] == "0"

    def test_image_prompt_variables(self) -> None:
        session = _session(
            historical_context={"country": "Florence", "description": "City-state"},
            image_prompts=[{"id": "p1", "prompt": "A street at dawn"}],
        )

        variables = StoryVariables(random.Random(1))(session)

        assert variables["image_prompt"] == "A street at dawn"
        assert variables["context_description"] == "Florence - City-state"
        assert variables["period"] == "1444-03-15"
        assert variables["source_id"] == "s1"
