"""Prompt template rendering.

Templates use ${name} placeholders. A placeholder with no matching variable
is left in the output verbatim and logged; it points at a definition that
reads a variable nobody provides.
"""

import logging
import re

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def find_placeholders(template: str) -> list[str]:
    """Placeholder names in order of first appearance."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_RE.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def render_template(template: str, variables: dict[str, str], label: str = "") -> str:
    """Substitute every ${name} with variables[name]."""
    unresolved: list[str] = []

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name in variables:
            return variables[name]
        unresolved.append(name)
        return match.group(0)

    rendered = PLACEHOLDER_RE.sub(_substitute, template)
    if unresolved:
        logger.warning(
            f"[{label}] Unresolved prompt placeholders left as-is: "
            f"{', '.join(sorted(set(unresolved)))}"
        )
    return rendered
