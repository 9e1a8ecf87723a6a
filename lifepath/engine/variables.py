"""Template variables for agent prompts.

Variables come from two places:

1. The agent's resolved input fields, keyed by the last segment of their
   path ("input.date" -> "date"). Strings pass through, dicts and lists are
   rendered as indented JSON, other scalars with str().
2. Variable hooks: callables that derive extra values from the whole
   session. The executor knows nothing about what they compute;
   StoryVariables is the hook for the life-story workflow.

Hook output is merged after the inputs, so a hook can override an input
variable of the same name.
"""

import json
import logging
import random
import time
from typing import Any, Iterable, Optional, Protocol

from lifepath.config import GAME_DEFAULTS, YEARS_TO_ADVANCE
from lifepath.sessions.paths import latest

logger = logging.getLogger(__name__)


class VariableHook(Protocol):
    def __call__(self, session: dict[str, Any]) -> dict[str, str]: ...


def stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, ensure_ascii=False)
    return str(value)


def input_variables(resolved: dict[str, Any]) -> dict[str, str]:
    """Resolved inputs (path -> value) as variables keyed by last segment."""
    return {path.rsplit(".", 1)[-1]: stringify(value) for path, value in resolved.items()}


def build_variables(
    resolved: dict[str, Any],
    session: dict[str, Any],
    hooks: Iterable[VariableHook] = (),
    extra: Optional[dict[str, str]] = None,
) -> dict[str, str]:
    variables = input_variables(resolved)
    for hook in hooks:
        variables.update(hook(session))
    if extra:
        variables.update(extra)
    return variables


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Expected a number, got {value!r}; using {default}")
        return default


class StoryVariables:
    """Derived variables for the life-story agents.

    The random source is injectable so tests can pin years_to_advance.
    """

    DEFAULT_STYLE = "natural lighting, period-accurate details"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def years_to_advance(self, age: int) -> int:
        """Segments get shorter as the character ages."""
        if age < 20:
            low, high = YEARS_TO_ADVANCE["youth"]
        elif age < 40:
            low, high = YEARS_TO_ADVANCE["adult"]
        else:
            low, high = YEARS_TO_ADVANCE["elder"]
        return self.rng.randint(low, high)

    def __call__(self, session: dict[str, Any]) -> dict[str, str]:
        variables: dict[str, str] = {}
        context = session.get("historical_context")
        persona = session.get("selected_persona")
        lifelines = session.get("lifelines") or []
        moments = session.get("pivotal_moments") or []
        choices = session.get("choices") or []
        config = session.get("config") or {}
        session_input = session.get("input") or {}

        last_lifeline = latest(session, "lifelines")
        last_moment = latest(session, "pivotal_moments")
        last_choice = latest(session, "choices")
        last_prompt = latest(session, "image_prompts")

        if context:
            variables["historical_context_json"] = stringify(context)
        if persona:
            variables["persona_json"] = stringify(persona)
        if last_lifeline:
            variables["lifeline_json"] = stringify(last_lifeline)
        if last_choice:
            variables["previous_choice"] = last_choice.get("option_title", "")
        if last_prompt:
            variables["image_prompt"] = last_prompt.get("prompt", "")
            variables["scene_description"] = last_prompt.get("prompt", "")

        variables["moment_number"] = str(len(moments) + 1)
        current_age = _as_int(last_lifeline.get("end_age")) if last_lifeline else 0
        variables["current_age"] = str(current_age)
        variables["number_of_options"] = str(
            config.get("number_of_persona_options")
            or GAME_DEFAULTS["number_of_persona_options"]
        )

        # Progression: each new segment starts where the last one ended
        expected_start_age = current_age
        years = self.years_to_advance(expected_start_age)
        variables["expected_start_age"] = str(expected_start_age)
        variables["years_to_advance"] = str(years)

        continuing = bool(lifelines) and bool(choices)
        if continuing:
            previous = "\n\n".join(stringify(item) for item in lifelines)
            variables["previous_lifeline_section"] = f"Previous lifelines:\n{previous}"
            moment_title = (last_moment or {}).get("title", "Unknown")
            variables["continuation_context"] = (
                "CONTINUATION CONTEXT:\n"
                f"- The character is now {expected_start_age} years old\n"
                f"- Previous pivotal moment: \"{moment_title}\"\n"
                f"- The character chose: \"{last_choice.get('option_title', '')}\"\n"
                f"- Continue the story from age {expected_start_age}, not from birth\n"
                "- Show the consequences of that choice\n"
                f"- Advance the narrative about {years} years"
            )
            variables["age_range_warning"] = (
                f"CRITICAL: start at age {expected_start_age}, not 0. "
                "This continues an existing life story."
            )
        else:
            variables["previous_lifeline_section"] = ""
            variables["continuation_context"] = (
                "This is the character's first lifeline, starting from birth (age 0)."
            )
            variables["age_range_warning"] = ""

        scene = ""
        if last_lifeline:
            scene += (
                f"Latest lifeline (age {last_lifeline.get('start_age')}-"
                f"{last_lifeline.get('end_age')}):\n{last_lifeline.get('narrative', '')}\n\n"
            )
        if last_moment:
            scene += (
                f"Latest pivotal moment:\n{last_moment.get('title', '')} "
                f"(age {last_moment.get('age')})\n{last_moment.get('situation', '')}\n"
            )
        variables["scene_context"] = scene or "The character has just started their life."

        metadata = session.get("metadata") or {}
        variables["source_type"] = "context"
        variables["source_id"] = metadata.get("session_id", "")
        variables["timestamp"] = str(int(time.time() * 1000))

        variables["location"] = session_input.get("location", "")
        variables["period"] = session_input.get("date", "")
        if context:
            variables["context_description"] = (
                f"{context.get('country', '')} - {context.get('description', '')}"
            )
        else:
            variables["context_description"] = session_input.get("location", "")
        variables["additional_style_instructions"] = self.DEFAULT_STYLE

        return variables
