"""Exception taxonomy for the workflow engine.

Executor failures (MissingInputError, BackendError, ParseError) are recorded
as failed execution-log entries and re-raised to the caller. Boundary
rejections (NotFoundError subclasses, DuplicateDecisionError) are raised
before the session document is touched.

Lost updates from concurrent writers to the same session are a known hazard
of the store contract; nothing here detects them.
"""

from typing import Optional


class LifepathError(Exception):
    """Base class for all engine errors."""


class AgentConfigError(LifepathError):
    """An agent definition is malformed or references unknown fields/agents."""


class MissingInputError(LifepathError):
    """A required input field is absent from the session."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Required input field missing: {field}")


class BackendError(LifepathError):
    """Transport, authentication or rate-limit failure in the generation backend."""

    def __init__(self, message: str, *, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class ParseError(LifepathError):
    """The backend response could not be parsed into the expected structure."""

    def __init__(self, message: str, *, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class NotFoundError(LifepathError):
    """Unknown session, agent or artifact id."""


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class AgentNotFoundError(NotFoundError):
    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Agent not found: {agent_id}")


class ArtifactNotFoundError(NotFoundError):
    def __init__(self, kind: str, artifact_id: str):
        self.kind = kind
        self.artifact_id = artifact_id
        super().__init__(f"{kind} not found: {artifact_id}")


class SessionExistsError(LifepathError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session already exists: {session_id}")


class DuplicateDecisionError(LifepathError):
    """A decision was already recorded for this artifact."""

    def __init__(self, artifact_id: str):
        self.artifact_id = artifact_id
        super().__init__(
            f"A decision has already been made for artifact {artifact_id}"
        )


class InvalidStatusTransition(LifepathError):
    """Session status may only move active -> completed | failed."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change session status from '{current}' to '{requested}'"
        )


class SessionClosedError(LifepathError):
    """The session has already completed or failed and accepts no more input."""

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(f"Session {session_id} is {status}")
