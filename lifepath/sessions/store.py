"""Session document stores.

One JSON document per session id. All stores share the same contract:
- create() fails if the id is taken (callers generate unique ids)
- read() fails with SessionNotFoundError if absent
- write() is a full-document overwrite, last writer wins

There is no locking or compare-and-swap. Concurrent read-modify-write
sequences against the same session id can lose updates; callers serialize
per session (see WorkflowRunner).
"""

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from lifepath.errors import SessionExistsError, SessionNotFoundError
from lifepath.sessions.db import Database, json_dumps, json_loads
from lifepath.sessions.schemas import new_session_document, utcnow_iso

logger = logging.getLogger(__name__)

# Session ids become directory and file names
_SAFE_SESSION_ID = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9_.-]*")


def check_session_id(session_id: str) -> str:
    """Return session_id if it is safe to use as a path component. Raises ValueError."""
    if not _SAFE_SESSION_ID.fullmatch(session_id or "") or ".." in session_id:
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id


@runtime_checkable
class SessionStore(Protocol):
    """Protocol for session document persistence."""

    def create(
        self,
        session_id: str,
        input: dict[str, Any],
        config: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]: ...

    def read(self, session_id: str) -> dict[str, Any]: ...

    def write(self, session_id: str, document: dict[str, Any]) -> None: ...

    def exists(self, session_id: str) -> bool: ...

    def list_ids(self) -> list[str]: ...


class InMemorySessionStore:
    """Process-local store. Documents are deep-copied in and out."""

    def __init__(self):
        self._documents: dict[str, dict[str, Any]] = {}

    def create(self, session_id, input, config=None):
        if session_id in self._documents:
            raise SessionExistsError(session_id)
        document = new_session_document(session_id, input, config)
        self._documents[session_id] = copy.deepcopy(document)
        logger.info(f"Created session {session_id} (memory)")
        return document

    def read(self, session_id):
        try:
            return copy.deepcopy(self._documents[session_id])
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def write(self, session_id, document):
        self._documents[session_id] = copy.deepcopy(document)

    def exists(self, session_id):
        return session_id in self._documents

    def list_ids(self):
        return sorted(self._documents)


class JsonFileSessionStore:
    """One folder per session: <root>/<session_id>/session.json.

    Media files for a session live next to its session.json. Sessions saved
    by older versions as flat <root>/<session_id>.json are still readable;
    the next write moves them into the folder layout.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def session_dir(self, session_id: str) -> Path:
        return self.root / check_session_id(session_id)

    def _file_path(self, session_id: str) -> Path:
        return self.session_dir(session_id) / "session.json"

    def _legacy_file_path(self, session_id: str) -> Path:
        return self.root / f"{check_session_id(session_id)}.json"

    def create(self, session_id, input, config=None):
        if self.exists(session_id):
            raise SessionExistsError(session_id)
        document = new_session_document(session_id, input, config)
        self.write(session_id, document)
        logger.info(f"Created session {session_id} at {self._file_path(session_id)}")
        return document

    def read(self, session_id):
        file_path = self._file_path(session_id)
        if not file_path.exists():
            file_path = self._legacy_file_path(session_id)
            if not file_path.exists():
                raise SessionNotFoundError(session_id)

        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def write(self, session_id, document):
        folder = self.session_dir(session_id)
        folder.mkdir(parents=True, exist_ok=True)
        file_path = self._file_path(session_id)

        # Write-then-rename so a crash never leaves a truncated document
        tmp_path = file_path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
            f.write("\n")
        tmp_path.replace(file_path)

    def exists(self, session_id):
        return (
            self._file_path(session_id).exists()
            or self._legacy_file_path(session_id).exists()
        )

    def list_ids(self):
        if not self.root.exists():
            return []
        ids = set()
        for item in self.root.iterdir():
            if item.is_dir() and (item / "session.json").exists():
                ids.add(item.name)
            elif item.is_file() and item.suffix == ".json":
                ids.add(item.stem)
        return sorted(ids)


class SqlSessionStore:
    """Sessions as JSON documents in a SQL table (SQLite or PostgreSQL)."""

    def __init__(self, database: Database):
        self.db = database
        self.db.init_db()

    def create(self, session_id, input, config=None):
        if self.exists(session_id):
            raise SessionExistsError(session_id)
        document = new_session_document(session_id, input, config)
        now = utcnow_iso()
        self.db.execute(
            """INSERT INTO workflow_sessions
               (session_id, status, document, created_at, updated_at)
               VALUES (%s, %s, %s, %s, %s)""",
            (session_id, document["metadata"]["status"], json_dumps(document), now, now),
        )
        logger.info(f"Created session {session_id} (sql)")
        return document

    def read(self, session_id):
        row = self.db.execute(
            "SELECT document FROM workflow_sessions WHERE session_id = %s",
            (session_id,),
            fetch="one",
        )
        if row is None:
            raise SessionNotFoundError(session_id)
        return json_loads(row["document"])

    def write(self, session_id, document):
        status = document.get("metadata", {}).get("status", "active")
        now = utcnow_iso()
        if self.exists(session_id):
            self.db.execute(
                """UPDATE workflow_sessions
                   SET document = %s, status = %s, updated_at = %s
                   WHERE session_id = %s""",
                (json_dumps(document), status, now, session_id),
            )
        else:
            self.db.execute(
                """INSERT INTO workflow_sessions
                   (session_id, status, document, created_at, updated_at)
                   VALUES (%s, %s, %s, %s, %s)""",
                (session_id, status, json_dumps(document), now, now),
            )

    def exists(self, session_id):
        row = self.db.execute(
            "SELECT session_id FROM workflow_sessions WHERE session_id = %s",
            (session_id,),
            fetch="one",
        )
        return row is not None

    def list_ids(self):
        rows = self.db.execute(
            "SELECT session_id FROM workflow_sessions ORDER BY session_id",
            fetch="all",
        )
        return [r["session_id"] for r in rows]


def get_session_store(settings) -> SessionStore:
    """Build the store selected by settings.session_store."""
    kind = settings.session_store
    if kind == "memory":
        return InMemorySessionStore()
    if kind == "file":
        return JsonFileSessionStore(settings.sessions_dir)
    if kind == "sql":
        return SqlSessionStore(
            Database(settings.database_url, sqlite_path=settings.sqlite_path)
        )
    raise ValueError(
        f"Unknown session store: '{kind}'. Expected 'memory', 'file' or 'sql'."
    )
