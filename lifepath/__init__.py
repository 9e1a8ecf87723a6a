"""lifepath - configuration-driven workflow engine for stepwise life narratives.

The engine runs configured generation steps ("agents") against one shared
session document per run:
- Agent definitions (prompts, inputs, output field, branching rules)
- Generic executor (resolve inputs, call the backend, write back, log)
- Workflow controller (next agent, pause for the user, or end)
"""

__version__ = "0.1.0"
