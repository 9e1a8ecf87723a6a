"""Known session fields and how agents may write to them.

Agent definitions name session fields by dot path ("input.date",
"lifelines"). Each path is parsed once, when the definition loads, into a
FieldRef whose root is a member of the closed SessionField enum. Whether
an output is appended or overwritten is a fixed property of the field,
never something an individual call decides.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any

from lifepath.errors import AgentConfigError
from lifepath.sessions.paths import MISSING
from lifepath.sessions.schemas import (
    GameState,
    SessionConfig,
    SessionInput,
    SessionMetadata,
)


class WriteMode(str, Enum):
    APPEND = "append"
    SET = "set"


class SessionField(str, Enum):
    """Top-level keys of a session document."""

    # Fixed sections (readable, never written by agents)
    METADATA = "metadata"
    INPUT = "input"
    CONFIG = "config"
    GAME_STATE = "game_state"

    # Singular artifacts
    HISTORICAL_CONTEXT = "historical_context"
    PERSONA_OPTIONS = "persona_options"
    SELECTED_PERSONA = "selected_persona"

    # Append-only collections
    LIFELINES = "lifelines"
    PIVOTAL_MOMENTS = "pivotal_moments"
    CHOICES = "choices"
    IMAGE_PROMPTS = "image_prompts"
    IMAGES = "images"

    @property
    def write_mode(self) -> WriteMode:
        return WriteMode.APPEND if self in APPEND_COLLECTIONS else WriteMode.SET

    @property
    def is_agent_writable(self) -> bool:
        return self not in _STRUCTURED_SECTIONS


APPEND_COLLECTIONS = frozenset({
    SessionField.LIFELINES,
    SessionField.PIVOTAL_MOMENTS,
    SessionField.CHOICES,
    SessionField.IMAGE_PROMPTS,
    SessionField.IMAGES,
})

# Sections with a fixed schema; sub-paths must name one of the model's fields
_STRUCTURED_SECTIONS = {
    SessionField.METADATA: SessionMetadata,
    SessionField.INPUT: SessionInput,
    SessionField.CONFIG: SessionConfig,
    SessionField.GAME_STATE: GameState,
}


@dataclass(frozen=True)
class FieldRef:
    """A parsed dot path: a known root field plus an optional sub-path."""

    root: SessionField
    subpath: tuple[str, ...] = ()

    @property
    def path(self) -> str:
        return ".".join((self.root.value, *self.subpath))

    @property
    def name(self) -> str:
        """Last path segment, used as the prompt variable name."""
        return self.subpath[-1] if self.subpath else self.root.value

    def read(self, document: dict[str, Any]) -> Any:
        """The value at this path in a session document, or MISSING."""
        value = document.get(self.root.value, MISSING)
        for key in self.subpath:
            if not isinstance(value, dict):
                return MISSING
            value = value.get(key, MISSING)
        return value


@lru_cache(maxsize=None)
def parse_field_path(path: str) -> FieldRef:
    """Parse a dot path into a FieldRef. Raises AgentConfigError."""
    segments = path.split(".") if path else []
    if not segments or any(not s for s in segments):
        raise AgentConfigError(f"Invalid session field path: {path!r}")

    root_name, *rest = segments
    try:
        root = SessionField(root_name)
    except ValueError:
        known = ", ".join(f.value for f in SessionField)
        raise AgentConfigError(
            f"Unknown session field '{root_name}' in path {path!r}. Known: {known}"
        ) from None

    model = _STRUCTURED_SECTIONS.get(root)
    if model is not None and rest:
        if len(rest) > 1 or rest[0] not in model.model_fields:
            raise AgentConfigError(
                f"Unknown key {'.'.join(rest)!r} under '{root.value}' in path {path!r}"
            )

    return FieldRef(root=root, subpath=tuple(rest))


def parse_output_field(path: str) -> SessionField:
    """Parse an agent output path. Only whole artifact fields are writable."""
    ref = parse_field_path(path)
    if ref.subpath or not ref.root.is_agent_writable:
        raise AgentConfigError(
            f"'{path}' is not a writable output field. Agents write whole "
            f"artifacts: "
            + ", ".join(f.value for f in SessionField if f.is_agent_writable)
        )
    return ref.root
