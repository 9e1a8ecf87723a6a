"""Caller-side retry for agent execution.

The executor never retries. Retrying is only safe when the agent overwrites
its output field: a retried append after a success whose acknowledgement
was lost would add a second entry. Append agents therefore run at most
once, whatever `attempts` says.
"""

import logging
import time
from typing import Any, Callable, Optional

from lifepath.agents.fields import WriteMode
from lifepath.agents.schemas import AgentConfig
from lifepath.errors import BackendError, ParseError

logger = logging.getLogger(__name__)

RETRY_DELAYS = [2, 5, 10]  # seconds between attempts

RETRYABLE_ERRORS = (BackendError, ParseError)


def run_with_retry(
    executor,
    agent: AgentConfig,
    session_id: str,
    attempts: int = 1,
    *,
    sleep: Callable[[float], None] = time.sleep,
    **execute_kwargs: Any,
) -> Any:
    """Execute an agent, retrying BackendError/ParseError for set-semantics agents."""
    attempts = max(attempts, 1)
    if agent.write_mode is WriteMode.APPEND and attempts > 1:
        logger.debug(
            f"[{agent.agent_id}] Appends to {agent.output_field.value}; "
            f"running once instead of {attempts} attempts"
        )
        attempts = 1

    last_error: Optional[Exception] = None
    for attempt in range(attempts):
        if attempt > 0:
            delay = RETRY_DELAYS[min(attempt - 1, len(RETRY_DELAYS) - 1)]
            logger.warning(
                f"[{agent.agent_id}] Retry {attempt}/{attempts - 1} after {delay}s "
                f"(previous error: {last_error})"
            )
            sleep(delay)
        try:
            return executor.execute(agent, session_id, **execute_kwargs)
        except RETRYABLE_ERRORS as e:
            last_error = e
            if attempt == attempts - 1:
                raise
    raise RuntimeError("All attempts exhausted")
