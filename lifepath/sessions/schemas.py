"""Session document schemas.

A session is persisted and passed around as a plain JSON document (dict).
These models describe its fixed parts and build the initial document;
agent outputs live in the collections and singular fields below and are
kept as free-form dicts.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from lifepath.config import GAME_DEFAULTS


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStatus(str, Enum):
    """Session lifecycle states. Moves active -> completed | failed only."""

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed status transitions (monotonic)
STATUS_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.ACTIVE: {SessionStatus.COMPLETED, SessionStatus.FAILED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.FAILED: set(),
}


class SessionInput(BaseModel):
    """Parameters the run was started with."""

    date: str = Field(..., description="Historical date, ISO or descriptive")
    location: str = Field(..., description="Geographical location")
    time: Optional[str] = None


class SessionConfig(BaseModel):
    """Per-session knobs."""

    number_of_persona_options: int = Field(
        default=GAME_DEFAULTS["number_of_persona_options"], ge=1
    )
    max_pivotal_moments: int = Field(
        default=GAME_DEFAULTS["max_pivotal_moments"], ge=1,
        description="Decision-point ceiling; the run ends once reached",
    )
    generate_images: bool = GAME_DEFAULTS["generate_images"]


class SessionMetadata(BaseModel):
    session_id: str
    start_time: str = Field(default_factory=utcnow_iso)
    end_time: Optional[str] = None
    current_step: str = "initialization"
    status: SessionStatus = SessionStatus.ACTIVE
    total_steps: int = 0


class UserDecision(BaseModel):
    """A choice the user made in response to an artifact."""

    artifact_id: str
    option_id: str
    option_title: str = ""
    timestamp: str = Field(default_factory=utcnow_iso)


class ExecutionLogEntry(BaseModel):
    """One entry per executor invocation, success or failure."""

    agent_id: str
    agent_name: str
    start_time: str
    end_time: str
    duration_ms: int
    input_summary: dict[str, Any] = Field(default_factory=dict)
    output_summary: Any = None
    success: bool
    error: Optional[str] = None


class GameState(BaseModel):
    current_age: Optional[int] = None
    is_alive: bool = True
    end_reason: Optional[str] = None


class SessionDocument(BaseModel):
    """Shape of a freshly created session document."""

    metadata: SessionMetadata
    input: SessionInput
    config: SessionConfig = Field(default_factory=SessionConfig)

    # Singular artifacts (overwritten)
    historical_context: Optional[dict[str, Any]] = None
    persona_options: Optional[dict[str, Any]] = None
    selected_persona: Optional[dict[str, Any]] = None

    # Append-only artifact collections
    lifelines: list[dict[str, Any]] = Field(default_factory=list)
    pivotal_moments: list[dict[str, Any]] = Field(default_factory=list)
    choices: list[dict[str, Any]] = Field(default_factory=list)
    image_prompts: list[dict[str, Any]] = Field(default_factory=list)
    images: list[dict[str, Any]] = Field(default_factory=list)

    execution_logs: list[dict[str, Any]] = Field(default_factory=list)
    game_state: GameState = Field(default_factory=GameState)


def new_session_document(
    session_id: str,
    input: dict[str, Any],
    config: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build the initial JSON document for a session.

    Unset config knobs fall back to GAME_DEFAULTS. Raises pydantic's
    ValidationError on malformed input.
    """
    document = SessionDocument(
        metadata=SessionMetadata(session_id=session_id),
        input=SessionInput.model_validate(input),
        config=SessionConfig.model_validate(
            {k: v for k, v in (config or {}).items() if v is not None}
        ),
    )
    # Unset singular artifacts stay absent rather than null
    return document.model_dump(mode="json", exclude_none=True)
