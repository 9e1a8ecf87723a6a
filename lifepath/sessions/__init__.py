"""Session documents: schemas, dot-path helpers, stores and mutations."""

from lifepath.sessions.paths import (
    MISSING,
    append_to_collection,
    get_nested,
    latest,
    set_nested,
)
from lifepath.sessions.schemas import SessionStatus, new_session_document
from lifepath.sessions.service import SessionService, generate_session_id
from lifepath.sessions.store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionStore,
    SqlSessionStore,
    get_session_store,
)

__all__ = [
    "MISSING",
    "append_to_collection",
    "get_nested",
    "latest",
    "set_nested",
    "SessionStatus",
    "new_session_document",
    "SessionService",
    "generate_session_id",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "SessionStore",
    "SqlSessionStore",
    "get_session_store",
]
