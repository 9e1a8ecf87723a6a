"""Generic agent executor.

Runs any agent against any session:

1. Resolve the agent's input fields from the session (MissingInputError
   before any backend call if a required one is absent)
2. Build template variables (inputs + variable hooks) and render prompts
3. Call the backend: complete_structured for text agents,
   synthesize_image for image agents
4. On success, re-read the session and write the output (append or set,
   fixed per output field), a success log entry and the step counter in a
   single store write
5. On MissingInputError, BackendError or ParseError, record a failed log
   entry and re-raise. Nothing is retried here.

The backend call is the only blocking point. It runs on a worker pool so a
caller can bound it with `timeout` (TimeoutError) or abort it through
`cancellation_check` (InterruptedError). Either way the session is left
exactly as it was: no output and no log entry. A call that is abandoned
keeps running on its worker thread; its result is discarded.
"""

import logging
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from lifepath.agents.fields import WriteMode
from lifepath.agents.schemas import AgentConfig, AgentKind
from lifepath.engine.prompts import render_template
from lifepath.engine.summaries import summarize_inputs, summarize_output
from lifepath.engine.variables import VariableHook, build_variables
from lifepath.errors import BackendError, MissingInputError, ParseError
from lifepath.llm.backends import GenerationBackend, ImageResult
from lifepath.sessions.paths import MISSING, append_to_collection, set_nested
from lifepath.sessions.schemas import ExecutionLogEntry

logger = logging.getLogger(__name__)

# How often a waiting execute() checks cancellation_check
CANCELLATION_POLL_SECONDS = 0.1

_RECORDED_FAILURES = (MissingInputError, BackendError, ParseError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentExecutor:
    """Executes agents against sessions held in a SessionStore."""

    def __init__(
        self,
        store,
        backend: GenerationBackend,
        variable_hooks: Iterable[VariableHook] = (),
        clock: Optional[Callable[[], datetime]] = None,
        pool: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 4,
    ):
        self.store = store
        self.backend = backend
        self.variable_hooks = tuple(variable_hooks)
        self._clock = clock or _utcnow
        self._pool = pool or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="lifepath-backend"
        )

    def close(self) -> None:
        """Stop accepting work. In-flight backend calls are not waited for."""
        self._pool.shutdown(wait=False)

    # -- inputs ---------------------------------------------------------

    @staticmethod
    def resolve_inputs(agent: AgentConfig, session: dict[str, Any]) -> dict[str, Any]:
        """Values of the agent's input fields, keyed by path, in declared order.

        Optional fields that are absent are left out. Raises MissingInputError
        for the first absent required field.
        """
        resolved: dict[str, Any] = {}
        for field in agent.input_fields:
            value = field.ref.read(session)
            if value is MISSING:
                if field.required:
                    raise MissingInputError(field.path)
                continue
            resolved[field.path] = value
        return resolved

    def missing_inputs(self, agent: AgentConfig, session_id: str) -> list[str]:
        """Required input paths currently absent from the session."""
        session = self.store.read(session_id)
        return [
            f.path for f in agent.input_fields
            if f.required and f.ref.read(session) is MISSING
        ]

    # -- execution ------------------------------------------------------

    def execute(
        self,
        agent: AgentConfig,
        session_id: str,
        *,
        timeout: Optional[float] = None,
        cancellation_check: Optional[Callable[[], bool]] = None,
        extra_variables: Optional[dict[str, str]] = None,
    ) -> Any:
        """Run one agent against one session and return its output."""
        label = agent.agent_id
        start_time = self._clock()
        session = self.store.read(session_id)
        resolved: dict[str, Any] = {}

        logger.info(f"[{label}] Executing {agent.name} for session {session_id}")
        try:
            resolved = self.resolve_inputs(agent, session)
            variables = build_variables(
                resolved, session, self.variable_hooks, extra=extra_variables
            )
            system_prompt = render_template(agent.system_prompt, variables, label=label)
            user_prompt = render_template(agent.user_prompt_template, variables, label=label)
            logger.debug(
                f"[{label}] Inputs: {', '.join(resolved) or 'none'}; "
                f"prompt {len(user_prompt):,} chars"
            )

            output = self._call_backend(
                agent, system_prompt, user_prompt, timeout, cancellation_check
            )
            if agent.kind is AgentKind.IMAGE:
                output = self._image_artifact(output)
            elif not isinstance(output, dict):
                raise ParseError(
                    f"{agent.name} must return a JSON object, got {type(output).__name__}"
                )
        except _RECORDED_FAILURES as e:
            logger.error(f"[{label}] Failed: {e}")
            self._record_failure(agent, session_id, start_time, resolved, e)
            raise

        # Re-read: the session may have changed while the backend was working
        document = self.store.read(session_id)
        output = self._write_output(document, agent, output)
        end_time = self._clock()
        append_to_collection(
            document,
            "execution_logs",
            self._log_entry(agent, start_time, end_time, resolved, output).model_dump(mode="json"),
        )
        metadata = document.setdefault("metadata", {})
        metadata["total_steps"] = int(metadata.get("total_steps", 0)) + 1
        self.store.write(session_id, document)

        logger.info(
            f"[{label}] Completed in {self._duration_ms(start_time, end_time)}ms "
            f"-> {agent.output_field.value} ({agent.write_mode.value})"
        )
        return output

    def _call_backend(
        self,
        agent: AgentConfig,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float],
        cancellation_check: Optional[Callable[[], bool]],
    ) -> Any:
        label = agent.agent_id
        params = agent.model.as_dict()

        if cancellation_check and cancellation_check():
            raise InterruptedError(f"[{label}] Cancelled before backend call")

        if agent.kind is AgentKind.IMAGE:
            future = self._pool.submit(
                self.backend.synthesize_image, user_prompt, params, label=label
            )
        else:
            future = self._pool.submit(
                self.backend.complete_structured,
                system_prompt, user_prompt, params, label=label,
            )
        return self._wait(future, label, timeout, cancellation_check)

    @staticmethod
    def _wait(
        future: Future,
        label: str,
        timeout: Optional[float],
        cancellation_check: Optional[Callable[[], bool]],
    ) -> Any:
        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            wait = CANCELLATION_POLL_SECONDS if cancellation_check else None
            if deadline is not None:
                remaining = max(deadline - time.monotonic(), 0.0)
                wait = remaining if wait is None else min(wait, remaining)
            try:
                return future.result(timeout=wait)
            except FutureTimeoutError:
                if future.done():
                    raise  # the backend itself raised TimeoutError

            if cancellation_check and cancellation_check():
                future.cancel()
                logger.info(f"[{label}] Cancelled while waiting for backend")
                raise InterruptedError(f"[{label}] Cancelled during backend call")
            if deadline is not None and time.monotonic() >= deadline:
                future.cancel()
                logger.warning(f"[{label}] Backend call timed out after {timeout}s")
                raise TimeoutError(f"[{label}] Backend call timed out after {timeout}s")

    def _image_artifact(self, result: ImageResult) -> dict[str, Any]:
        return {
            "id": f"image-{uuid.uuid4().hex[:12]}",
            "url": result.as_url(),
            "revised_prompt": result.revised_prompt,
            "mime_type": result.mime_type,
            "source_type": "unknown",
            "source_id": "",
            "timestamp": self._clock().isoformat(),
        }

    @staticmethod
    def _write_output(document: dict[str, Any], agent: AgentConfig, output: Any) -> Any:
        name = agent.output_field.value
        if agent.write_mode is WriteMode.APPEND:
            existing_ids = {
                item.get("id") for item in document.get(name) or []
                if isinstance(item, dict)
            }
            if not output.get("id") or output["id"] in existing_ids:
                prefix = name.rstrip("s").replace("_", "-")
                output = {**output, "id": f"{prefix}-{uuid.uuid4().hex[:8]}"}
            append_to_collection(document, name, output)
        else:
            set_nested(document, name, output)
        return output

    def _record_failure(
        self,
        agent: AgentConfig,
        session_id: str,
        start_time: datetime,
        resolved: dict[str, Any],
        error: Exception,
    ) -> None:
        end_time = self._clock()
        entry = self._log_entry(agent, start_time, end_time, resolved, None, error=error)
        document = self.store.read(session_id)
        append_to_collection(document, "execution_logs", entry.model_dump(mode="json"))
        self.store.write(session_id, document)

    def _log_entry(
        self,
        agent: AgentConfig,
        start_time: datetime,
        end_time: datetime,
        resolved: dict[str, Any],
        output: Any,
        error: Optional[Exception] = None,
    ) -> ExecutionLogEntry:
        return ExecutionLogEntry(
            agent_id=agent.agent_id,
            agent_name=agent.name,
            start_time=start_time.isoformat(),
            end_time=end_time.isoformat(),
            duration_ms=self._duration_ms(start_time, end_time),
            input_summary=summarize_inputs(resolved),
            output_summary=summarize_output(output),
            success=error is None,
            error=str(error) if error is not None else None,
        )

    @staticmethod
    def _duration_ms(start_time: datetime, end_time: datetime) -> int:
        return max(int((end_time - start_time).total_seconds() * 1000), 0)
