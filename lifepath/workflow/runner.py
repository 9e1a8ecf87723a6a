"""Workflow runner: drives a session from agent to agent.

    start_session(input, config)              -> RunOutcome (paused at persona choice)
    select_persona(session_id, persona_id)    -> RunOutcome (paused at pivotal moment)
    make_choice(session_id, moment_id, choice_id) -> RunOutcome (paused or ended)

Each call runs agents until the controller says PAUSED or ENDED. An ENDED
transition completes the session with its reason. Decisions are validated
and recorded before anything runs; a rejected decision changes nothing.

When a session's config has generate_images set and the runner was given
image services, each new lifeline and pivotal moment is illustrated right
after it is written. A failed illustration is logged and the story goes on.

The store has no locking, so the runner serializes calls per session id
with an in-process lock, dropped once the session ends. Calls for different
sessions run independently.
Agent failures propagate to the caller with the session still active, so
the step can be retried.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from lifepath.errors import BackendError, ParseError, SessionClosedError
from lifepath.sessions.schemas import SessionStatus
from lifepath.sessions.service import SessionService
from lifepath.workflow.controller import (
    EndReason,
    Transition,
    TransitionKind,
    WorkflowController,
)

logger = logging.getLogger(__name__)

# Collections whose new items are illustrated when generate_images is on
ILLUSTRATED_COLLECTIONS = {
    "lifelines": "lifeline",
    "pivotal_moments": "pivotal_moment",
}


@dataclass
class RunOutcome:
    """Where a session stands after a runner call."""

    session_id: str
    transition: Transition
    executed: list[str] = field(default_factory=list)

    @property
    def awaiting_input(self) -> bool:
        return self.transition.kind is TransitionKind.PAUSED

    @property
    def ended(self) -> bool:
        return self.transition.kind is TransitionKind.ENDED


class WorkflowRunner:
    """Runs the agent workflow for sessions in one store."""

    def __init__(
        self,
        registry,
        controller: WorkflowController,
        store,
        services,
        backend_timeout: Optional[float] = None,
        images=None,
    ):
        self.registry = registry
        self.controller = controller
        self.store = store
        self.services = services
        self.images = images
        self.sessions = SessionService(store)
        self.backend_timeout = backend_timeout
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock

    def _release_lock(self, session_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(session_id, None)

    # -- entry points ---------------------------------------------------

    def start_session(
        self,
        input: dict[str, Any],
        config: Optional[dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> RunOutcome:
        """Create a session and run from the initial agent."""
        document = self.sessions.create_session(input, config, session_id=session_id)
        session_id = document["metadata"]["session_id"]
        with self._lock_for(session_id):
            initial = self.registry.get_initial_agent()
            return self._run_from(session_id, initial.agent_id)

    def select_persona(self, session_id: str, persona_id: str) -> RunOutcome:
        with self._lock_for(session_id):
            self._require_active(session_id)
            self.sessions.select_persona(session_id, persona_id)
            return self._resume(session_id, "persona_options")

    def make_choice(self, session_id: str, moment_id: str, choice_id: str) -> RunOutcome:
        with self._lock_for(session_id):
            self._require_active(session_id)
            self.sessions.record_decision(session_id, moment_id, choice_id)
            return self._resume(session_id, "pivotal_moments")

    # -- internals ------------------------------------------------------

    def _require_active(self, session_id: str) -> None:
        document = self.store.read(session_id)
        status = document.get("metadata", {}).get("status", SessionStatus.ACTIVE.value)
        if status != SessionStatus.ACTIVE.value:
            raise SessionClosedError(session_id, status)

    def _resume(self, session_id: str, decided_field: str) -> RunOutcome:
        """Continue after the user decided on the output of decided_field."""
        agent_id = self.services.agent_writing(decided_field)
        session = self.store.read(session_id)
        transition = self.controller.next(agent_id, session, user_just_acted=True)
        if transition.kind is TransitionKind.NEXT:
            return self._run_from(session_id, transition.agent_id)
        return self._settle(session_id, transition, [])

    def _run_from(self, session_id: str, agent_id: str) -> RunOutcome:
        executed: list[str] = []
        current = agent_id
        while True:
            self.sessions.set_current_step(session_id, f"running {current}")
            try:
                self.services.run_agent(current, session_id, timeout=self.backend_timeout)
            except Exception:
                self.sessions.set_current_step(session_id, f"error in {current}")
                raise
            executed.append(current)

            agent = self.registry.get_agent_config(current)
            self._illustrate(session_id, agent)
            session = self.store.read(session_id)
            transition = self.controller.next(current, session, user_just_acted=False)
            if (
                transition.kind is TransitionKind.ENDED
                and transition.reason == EndReason.MAX_MOMENTS
                and agent.requires_user_input
            ):
                # The user still answers this last decision point; the end
                # condition is applied again when they do. Death ends at once.
                transition = Transition.paused()

            if transition.kind is TransitionKind.NEXT:
                current = transition.agent_id
                continue
            return self._settle(session_id, transition, executed)

    def _settle(self, session_id: str, transition: Transition, executed: list[str]) -> RunOutcome:
        if transition.kind is TransitionKind.ENDED:
            self.sessions.end_session(session_id, SessionStatus.COMPLETED, transition.reason)
            self._release_lock(session_id)
        else:
            self.sessions.set_current_step(session_id, "awaiting user input")
        logger.info(
            f"[{session_id}] Ran {', '.join(executed) or 'nothing'} -> "
            f"{transition.kind.value}"
            + (f" ({transition.reason})" if transition.reason else "")
        )
        return RunOutcome(session_id=session_id, transition=transition, executed=executed)

    def _illustrate(self, session_id: str, agent) -> None:
        """Scene image for the item the agent just appended, if enabled."""
        source_type = ILLUSTRATED_COLLECTIONS.get(agent.output_field.value)
        if self.images is None or source_type is None:
            return
        document = self.store.read(session_id)
        if not document.get("config", {}).get("generate_images"):
            return

        source_id = document[agent.output_field.value][-1]["id"]
        try:
            self.images.generate_scene_image(
                session_id, source_type, source_id, timeout=self.backend_timeout
            )
        except (BackendError, ParseError, TimeoutError) as e:
            logger.warning(f"[{session_id}] No image for {source_type} {source_id}: {e}")
