"""Session mutations used by the runner and domain services.

Every method is a read-modify-write against the store. Lookups and
validation happen on the freshly read document before anything is changed,
so a rejected call leaves the stored session exactly as it was.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from lifepath.errors import (
    ArtifactNotFoundError,
    DuplicateDecisionError,
    InvalidStatusTransition,
)
from lifepath.sessions.paths import append_to_collection
from lifepath.sessions.schemas import (
    STATUS_TRANSITIONS,
    SessionStatus,
    UserDecision,
    utcnow_iso,
)

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    """Readable, sortable id: session-YYYYMMDD-HHMMSS-<6 hex>."""
    now = datetime.now(timezone.utc)
    return f"session-{now.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:6]}"


class SessionService:
    """Typed operations over a SessionStore."""

    def __init__(self, store):
        self.store = store

    def create_session(
        self,
        input: dict[str, Any],
        config: Optional[dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> dict[str, Any]:
        session_id = session_id or generate_session_id()
        document = self.store.create(session_id, input, config)
        logger.info(
            f"Session {session_id} started for {input.get('location')} "
            f"on {input.get('date')}"
        )
        return document

    def read(self, session_id: str) -> dict[str, Any]:
        return self.store.read(session_id)

    def update_metadata(self, session_id: str, **fields: Any) -> dict[str, Any]:
        """Merge fields into metadata. Status changes go through end_session."""
        if "status" in fields:
            raise ValueError("Use end_session() to change the session status")
        document = self.store.read(session_id)
        document.setdefault("metadata", {}).update(fields)
        self.store.write(session_id, document)
        return document

    def set_current_step(self, session_id: str, step: str) -> None:
        self.update_metadata(session_id, current_step=step)
        logger.debug(f"[{session_id}] step: {step}")

    def end_session(
        self,
        session_id: str,
        status: SessionStatus = SessionStatus.COMPLETED,
        reason: Optional[str] = None,
    ) -> dict[str, Any]:
        """Move the session out of 'active'. Raises InvalidStatusTransition."""
        status = SessionStatus(status)
        document = self.store.read(session_id)
        metadata = document.setdefault("metadata", {})
        current = SessionStatus(metadata.get("status", SessionStatus.ACTIVE.value))

        if status not in STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransition(current.value, status.value)

        metadata["status"] = status.value
        metadata["end_time"] = utcnow_iso()
        if reason:
            metadata["current_step"] = f"ended: {reason}"
            game_state = document.setdefault("game_state", {})
            game_state["end_reason"] = reason
            if reason == "death":
                game_state["is_alive"] = False

        self.store.write(session_id, document)
        logger.info(f"Session {session_id} {status.value} ({reason or 'no reason'})")
        return document

    def select_persona(self, session_id: str, persona_id: str) -> dict[str, Any]:
        """Copy one of the generated persona options into selected_persona."""
        document = self.store.read(session_id)
        options = (document.get("persona_options") or {}).get("options") or []
        persona = next((p for p in options if p.get("id") == persona_id), None)
        if persona is None:
            raise ArtifactNotFoundError("Persona", persona_id)
        if document.get("selected_persona"):
            raise DuplicateDecisionError("persona_options")

        document["selected_persona"] = persona
        self.store.write(session_id, document)
        logger.info(f"[{session_id}] Persona selected: {persona.get('title', persona_id)}")
        return persona

    def record_decision(
        self, session_id: str, moment_id: str, choice_id: str
    ) -> dict[str, Any]:
        """Record the user's choice at a pivotal moment.

        Raises ArtifactNotFoundError for an unknown moment or choice and
        DuplicateDecisionError if this moment already has a decision.
        """
        document = self.store.read(session_id)
        moment = next(
            (m for m in document.get("pivotal_moments") or [] if m.get("id") == moment_id),
            None,
        )
        if moment is None:
            raise ArtifactNotFoundError("Pivotal moment", moment_id)

        choice = next(
            (c for c in moment.get("choices") or [] if c.get("id") == choice_id),
            None,
        )
        if choice is None:
            raise ArtifactNotFoundError("Choice", choice_id)

        if any(d.get("artifact_id") == moment_id for d in document.get("choices") or []):
            raise DuplicateDecisionError(moment_id)

        decision = UserDecision(
            artifact_id=moment_id,
            option_id=choice_id,
            option_title=choice.get("title", ""),
        ).model_dump(mode="json")
        append_to_collection(document, "choices", decision)
        self.store.write(session_id, document)
        logger.info(f"[{session_id}] Choice made at {moment_id}: {decision['option_title']}")
        return decision
