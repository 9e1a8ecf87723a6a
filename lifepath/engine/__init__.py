"""Agent execution: prompt variables, template rendering, the generic executor."""

from lifepath.engine.executor import AgentExecutor
from lifepath.engine.prompts import find_placeholders, render_template
from lifepath.engine.variables import StoryVariables, VariableHook, build_variables

__all__ = [
    "AgentExecutor",
    "find_placeholders",
    "render_template",
    "StoryVariables",
    "VariableHook",
    "build_variables",
]
