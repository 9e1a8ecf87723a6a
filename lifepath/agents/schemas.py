"""Agent definition schemas.

An agent is one configured generation step: which session fields it reads,
how its prompt is built, which model parameters it sends, where its output
goes, and which agent runs after it.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from lifepath.agents.fields import (
    FieldRef,
    SessionField,
    WriteMode,
    parse_field_path,
    parse_output_field,
)
from lifepath.errors import AgentConfigError


class AgentKind(str, Enum):
    """Selects the backend operation. Never inferred from response shape."""

    TEXT = "text"
    IMAGE = "image"


class RuleCondition(str, Enum):
    ALWAYS = "always"
    USER_SELECTION = "user_selection"
    END_CONDITION = "end_condition"


class InputField(BaseModel):
    """A session value the agent reads, by dot path."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Dot path into the session, e.g. 'input.date'")
    required: bool = True
    description: str = ""

    @field_validator("path")
    @classmethod
    def _parse_path(cls, value: str) -> str:
        try:
            parse_field_path(value)
        except AgentConfigError as e:
            raise ValueError(str(e)) from e
        return value

    @property
    def ref(self) -> FieldRef:
        return parse_field_path(self.path)


class NextAgentRule(BaseModel):
    """One branching rule. Rules are evaluated in the order they are written."""

    model_config = ConfigDict(frozen=True)

    condition: RuleCondition
    next_agent_id: Optional[str] = Field(
        default=None, description="Agent to run next; null ends the workflow"
    )
    description: str = ""


class EndCondition(BaseModel):
    """Marks an agent's output collection as a sequence of decision points.

    The workflow ends once the collection holds `ceiling` items (read from
    session config, falling back to default_ceiling), or when the latest
    item carries a truthy terminal_flag.
    """

    model_config = ConfigDict(frozen=True)

    collection: SessionField
    ceiling_config_key: str = "max_pivotal_moments"
    default_ceiling: int = Field(default=5, ge=1)
    terminal_flag: Optional[str] = "character_died"

    @field_validator("collection", mode="before")
    @classmethod
    def _parse_collection(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                field = parse_output_field(value)
            except AgentConfigError as e:
                raise ValueError(str(e)) from e
            if field.write_mode is not WriteMode.APPEND:
                raise ValueError(f"End condition collection '{value}' is not a collection")
            return field
        return value


class ModelParams(BaseModel):
    """Per-agent model parameters. Text and image agents use different keys."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str
    # Text
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    # Image
    size: Optional[str] = None
    quality: Optional[str] = None
    style: Optional[str] = None
    aspect_ratio: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AgentConfig(BaseModel):
    """Full definition of one agent. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    agent_id: str = Field(..., description="Unique identifier (snake_case)")
    name: str
    description: str = ""
    kind: AgentKind = AgentKind.TEXT

    system_prompt: str = ""
    user_prompt_template: str = Field(
        ..., description="Prompt with ${name} placeholders"
    )
    model: ModelParams

    input_fields: tuple[InputField, ...] = ()
    output_field: SessionField = Field(
        ..., description="Session field the output is written to"
    )
    next_agent_rules: tuple[NextAgentRule, ...] = ()

    repeatable: bool = False
    requires_user_input: bool = False
    entry_point: bool = Field(
        default=False, description="The agent a new session starts with"
    )
    end_condition: Optional[EndCondition] = None

    @field_validator("output_field", mode="before")
    @classmethod
    def _parse_output_field(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return parse_output_field(value)
            except AgentConfigError as e:
                raise ValueError(str(e)) from e
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "AgentConfig":
        if self.kind is AgentKind.IMAGE and self.output_field is not SessionField.IMAGES:
            raise ValueError(
                f"Image agent '{self.agent_id}' must write to 'images', "
                f"not '{self.output_field.value}'"
            )
        if self.output_field.write_mode is WriteMode.APPEND and not self.repeatable:
            raise ValueError(
                f"Agent '{self.agent_id}' appends to '{self.output_field.value}' "
                f"and must be marked repeatable"
            )
        return self

    @property
    def write_mode(self) -> WriteMode:
        return self.output_field.write_mode

    @property
    def is_decision_point(self) -> bool:
        return self.end_condition is not None


class AgentSummary(BaseModel):
    """Lightweight listing entry."""

    agent_id: str
    name: str
    kind: AgentKind
    output_field: SessionField
    requires_user_input: bool
    entry_point: bool
