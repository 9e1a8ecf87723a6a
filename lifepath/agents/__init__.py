"""Agent definitions and the registry that serves them."""

from lifepath.agents.fields import (
    APPEND_COLLECTIONS,
    FieldRef,
    SessionField,
    WriteMode,
    parse_field_path,
    parse_output_field,
)
from lifepath.agents.registry import AgentRegistry, get_agent_registry
from lifepath.agents.schemas import (
    AgentConfig,
    AgentKind,
    EndCondition,
    InputField,
    ModelParams,
    NextAgentRule,
    RuleCondition,
)

__all__ = [
    "APPEND_COLLECTIONS",
    "FieldRef",
    "SessionField",
    "WriteMode",
    "parse_field_path",
    "parse_output_field",
    "AgentRegistry",
    "get_agent_registry",
    "AgentConfig",
    "AgentKind",
    "EndCondition",
    "InputField",
    "ModelParams",
    "NextAgentRule",
    "RuleCondition",
]
