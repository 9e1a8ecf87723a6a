"""Size-bounded summaries of agent inputs and outputs for execution logs."""

from typing import Any

MAX_STRING_CHARS = 200

# Output keys copied into the summary when present
_OUTPUT_KEYS = ("id", "title", "age", "year", "start_age", "end_age")


def _truncate(text: str) -> str:
    if len(text) <= MAX_STRING_CHARS:
        return text
    return text[:MAX_STRING_CHARS] + f"... ({len(text)} chars)"


def summarize_value(value: Any) -> Any:
    if isinstance(value, str):
        return _truncate(value)
    if isinstance(value, (bool, int, float)) or value is None:
        return value
    if isinstance(value, list):
        return f"[list with {len(value)} items]"
    if isinstance(value, dict):
        return _truncate("{" + ", ".join(str(k) for k in value) + "}")
    return _truncate(str(value))


def summarize_inputs(resolved: dict[str, Any]) -> dict[str, Any]:
    """Primitives as-is, strings truncated, containers reduced to shape."""
    return {path: summarize_value(value) for path, value in resolved.items()}


def summarize_output(output: Any) -> Any:
    """Keep identifying fields and counts; drop the content."""
    if output is None:
        return None
    if isinstance(output, list):
        return f"[list with {len(output)} items]"
    if not isinstance(output, dict):
        return summarize_value(output)

    summary: dict[str, Any] = {}
    for key in _OUTPUT_KEYS:
        if output.get(key) is not None:
            summary[key] = summarize_value(output[key])
    if isinstance(output.get("options"), list):
        summary["options_count"] = len(output["options"])
    if isinstance(output.get("choices"), list):
        summary["choices_count"] = len(output["choices"])
    summary["_structure"] = _truncate(", ".join(str(k) for k in output))
    return summary
