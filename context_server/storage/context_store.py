"""JSON-file-backed session and context store.

Purpose of this abstraction:
    Persist sessions and their attached contexts in a single JSON document so the
    HTTP layer can resolve `contextId` references before calling the model adapter.

Persistence model:
    The document has three top-level maps: `sessions`, `contexts`, `models`.
    Every operation reloads the file, applies its change, and writes the full
    document back (pretty-printed, indent 2) through a temporary file that is
    renamed over the target, so readers never observe a partial write. There is
    no in-memory cache.

Concurrency:
    Reads and read-modify-write cycles are serialized with a process-local lock.
    Multiple processes sharing one file are not coordinated.

Failure handling:
    - A missing or unreadable file loads as an empty document (logged).
    - Write failures are logged and re-raised.
    - Unknown identifiers raise `SessionNotFound` / `ContextNotFound`.
"""

import json
import logging
import os
import tempfile
import threading

from context_server.errors import (
    ContextNotFound,
    SessionAlreadyExists,
    SessionNotFound,
)
from context_server.utils import generate_id, utc_now_iso


logger = logging.getLogger(__name__)


def empty_db():
    return {"sessions": {}, "contexts": {}, "models": {}}


class ContextStore:
    """Session/context CRUD over one JSON file."""

    def __init__(self, path):
        self.path = path
        self._lock = threading.Lock()

    def ensure_initialized(self):
        """Create the parent directory and an empty document when missing."""
        with self._lock:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            if not os.path.exists(self.path):
                self._save(empty_db())

    def _load(self):
        if not os.path.exists(self.path):
            return empty_db()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.exception("Failed to load context database from %s", self.path)
            return empty_db()

        if not isinstance(data, dict):
            logger.warning("Context database at %s is not an object; starting empty", self.path)
            return empty_db()
        for key, value in empty_db().items():
            data.setdefault(key, value)
        return data

    def _save(self, db):
        directory = os.path.dirname(self.path) or "."
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False
            ) as f:
                tmp_path = f.name
                json.dump(db, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError:
            logger.exception("Failed to save context database to %s", self.path)
            raise
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

    # ============================================================
    # Sessions
    # ============================================================

    def create_session(self, session_id=None, metadata=None):
        with self._lock:
            db = self._load()

            if not session_id:
                session_id = generate_id("session")

            if session_id in db["sessions"]:
                raise SessionAlreadyExists(session_id)

            now = utc_now_iso()
            session = {
                "id": session_id,
                "created": now,
                "updated": now,
                "contexts": [],
                "metadata": metadata or {},
            }

            db["sessions"][session_id] = session
            self._save(db)
            return session

    def get_session(self, session_id):
        with self._lock:
            db = self._load()
            session = db["sessions"].get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            return session

    def update_session(self, session_id, updates):
        """Shallow-merge `updates` into the session and refresh `updated`."""
        with self._lock:
            db = self._load()
            session = db["sessions"].get(session_id)
            if session is None:
                raise SessionNotFound(session_id)

            updated = {
                **session,
                **(updates or {}),
                "updated": utc_now_iso(),
            }
            db["sessions"][session_id] = updated
            self._save(db)
            return updated

    def delete_session(self, session_id):
        # Contexts owned by the session are left in place.
        with self._lock:
            db = self._load()
            if session_id not in db["sessions"]:
                raise SessionNotFound(session_id)

            del db["sessions"][session_id]
            self._save(db)

    def get_session_contexts(self, session_id):
        with self._lock:
            db = self._load()
            session = db["sessions"].get(session_id)
            if session is None:
                raise SessionNotFound(session_id)

            return [
                db["contexts"][context_id]
                for context_id in session.get("contexts", [])
                if context_id in db["contexts"]
            ]

    # ============================================================
    # Contexts
    # ============================================================

    def create_context(self, session_id, data):
        with self._lock:
            db = self._load()
            session = db["sessions"].get(session_id)
            if session is None:
                raise SessionNotFound(session_id)

            now = utc_now_iso()
            context = {
                "id": generate_id("ctx"),
                "sessionId": session_id,
                "created": now,
                "updated": now,
                "data": data,
            }

            db["contexts"][context["id"]] = context
            session.setdefault("contexts", []).append(context["id"])
            session["updated"] = now

            self._save(db)
            return context

    def get_context(self, context_id):
        with self._lock:
            db = self._load()
            context = db["contexts"].get(context_id)
            if context is None:
                raise ContextNotFound(context_id)
            return context

    def update_context(self, context_id, updates):
        """Apply `updates["data"]` to the stored data; other keys are ignored.

        Two objects are shallow-merged. Any other combination replaces the stored
        data with the new value; a missing or null `data` leaves it unchanged.
        """
        with self._lock:
            db = self._load()
            context = db["contexts"].get(context_id)
            if context is None:
                raise ContextNotFound(context_id)

            data = context.get("data")
            new_data = (updates or {}).get("data")
            if isinstance(data, dict) and isinstance(new_data, dict):
                data = {**data, **new_data}
            elif new_data is not None:
                data = new_data

            updated = {
                **context,
                "data": data,
                "updated": utc_now_iso(),
            }
            db["contexts"][context_id] = updated
            self._save(db)
            return updated

    def delete_context(self, context_id):
        with self._lock:
            db = self._load()
            context = db["contexts"].get(context_id)
            if context is None:
                raise ContextNotFound(context_id)

            session = db["sessions"].get(context.get("sessionId"))
            if session is not None:
                session["contexts"] = [
                    cid for cid in session.get("contexts", []) if cid != context_id
                ]
                session["updated"] = utc_now_iso()

            del db["contexts"][context_id]
            self._save(db)
