"""Story content services.

One thin caller per agent: run it through the executor, then do whatever
light bookkeeping its output needs. The runner dispatches to these by
agent id.
"""

import logging
from typing import Any, Callable, Optional

from lifepath.workflow.retry import run_with_retry

logger = logging.getLogger(__name__)


class ContentServices:
    """Story content generation for one registry/executor/store triple."""

    def __init__(self, registry, executor, store, retry_attempts: int = 1):
        self.registry = registry
        self.executor = executor
        self.store = store
        self.retry_attempts = retry_attempts
        self._handlers: dict[str, Callable[..., Any]] = {
            "historical_context": self.generate_historical_context,
            "persona_generation": self.generate_persona_options,
            "lifeline_generation": self.generate_lifeline,
            "pivotal_moment_generation": self.generate_pivotal_moment,
        }

    def run_agent(self, agent_id: str, session_id: str, **execute_kwargs: Any) -> Any:
        """Run an agent by id, using its content service when there is one."""
        handler = self._handlers.get(agent_id)
        if handler is not None:
            return handler(session_id, **execute_kwargs)
        return self._execute(agent_id, session_id, **execute_kwargs)

    def _execute(self, agent_id: str, session_id: str, **execute_kwargs: Any) -> Any:
        agent = self.registry.get_agent_config(agent_id)
        return run_with_retry(
            self.executor, agent, session_id, self.retry_attempts, **execute_kwargs
        )

    def generate_historical_context(self, session_id: str, **kwargs: Any) -> dict[str, Any]:
        context = self._execute("historical_context", session_id, **kwargs)
        logger.info(f"[{session_id}] Historical context: {context.get('country', '?')}")
        return context

    def generate_persona_options(self, session_id: str, **kwargs: Any) -> dict[str, Any]:
        personas = self._execute("persona_generation", session_id, **kwargs)
        logger.info(
            f"[{session_id}] Generated {len(personas.get('options') or [])} persona options"
        )
        return personas

    def generate_lifeline(self, session_id: str, **kwargs: Any) -> dict[str, Any]:
        """Generate the next lifeline and move game_state.current_age to its end."""
        lifeline = self._execute("lifeline_generation", session_id, **kwargs)
        end_age = lifeline.get("end_age")
        if isinstance(end_age, (int, float)):
            document = self.store.read(session_id)
            document.setdefault("game_state", {})["current_age"] = int(end_age)
            self.store.write(session_id, document)
        logger.info(
            f"[{session_id}] Lifeline {lifeline.get('id')}: "
            f"age {lifeline.get('start_age')}-{end_age}"
        )
        return lifeline

    def generate_pivotal_moment(self, session_id: str, **kwargs: Any) -> dict[str, Any]:
        moment = self._execute("pivotal_moment_generation", session_id, **kwargs)
        logger.info(
            f"[{session_id}] Pivotal moment {moment.get('id')}: {moment.get('title', '')} "
            f"({len(moment.get('choices') or [])} choices)"
        )
        return moment

    def agent_writing(self, field_name: str) -> Optional[str]:
        """Id of the agent whose output field is field_name."""
        for agent in self.registry.list_agents():
            if agent.output_field.value == field_name:
                return agent.agent_id
        return None
