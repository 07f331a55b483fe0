"""
Server-side session storage.

The cookie only carries a signed session id; the session body lives here.
MongoSessionStore keeps one document per session in the "sessions"
collection:

  {_id: <sid>, session: {...}, expires: <utc datetime>}

Expiry is owned by the database (TTL index on `expires`). Documents read
after their expiry but before the TTL sweep are treated as absent.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

from pymongo.errors import PyMongoError

from database import ConnectionManager
from errors import DatabaseUnavailable

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    async def load(self, session_id: str) -> Optional[dict[str, Any]]:
        ...

    async def save(self, session_id: str, data: dict[str, Any], max_age: int) -> None:
        ...

    async def delete(self, session_id: str) -> None:
        ...


class MemorySessionStore:
    """Process-local store for development and tests. Lost on restart."""

    def __init__(self):
        self._sessions: dict[str, tuple[dict[str, Any], float]] = {}

    async def load(self, session_id: str) -> Optional[dict[str, Any]]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        data, expires = entry
        if time.time() >= expires:
            del self._sessions[session_id]
            return None
        return dict(data)

    async def save(self, session_id: str, data: dict[str, Any], max_age: int) -> None:
        self._sessions[session_id] = (dict(data), time.time() + max_age)

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class MongoSessionStore:
    """
    Sessions in MongoDB, sharing the application's connection.

    While the database is unavailable (not connected yet, or a driver error
    after connecting), loads return None and writes are dropped, so
    anonymous pages keep rendering.
    """

    def __init__(self, connection: ConnectionManager, collection: str = "sessions"):
        self._connection = connection
        self._collection_name = collection
        self._indexed = False

    async def _collection(self):
        collection = self._connection.database[self._collection_name]
        if not self._indexed:
            await collection.create_index("expires", expireAfterSeconds=0)
            self._indexed = True
        return collection

    async def load(self, session_id: str) -> Optional[dict[str, Any]]:
        try:
            collection = await self._collection()
            doc = await collection.find_one({"_id": session_id})
        except (DatabaseUnavailable, PyMongoError):
            logger.warning("Session store unavailable; treating session %s… as new", session_id[:6])
            return None

        if doc is None:
            return None
        expires = doc.get("expires")
        if expires is not None:
            if expires.tzinfo is None:
                expires = expires.replace(tzinfo=timezone.utc)
            if expires <= datetime.now(timezone.utc):
                return None
        return doc.get("session") or {}

    async def save(self, session_id: str, data: dict[str, Any], max_age: int) -> None:
        expires = datetime.now(timezone.utc) + timedelta(seconds=max_age)
        try:
            collection = await self._collection()
            await collection.replace_one(
                {"_id": session_id},
                {"_id": session_id, "session": data, "expires": expires},
                upsert=True,
            )
        except (DatabaseUnavailable, PyMongoError):
            logger.warning("Session store unavailable; session %s… not saved", session_id[:6])

    async def delete(self, session_id: str) -> None:
        try:
            collection = await self._collection()
            await collection.delete_one({"_id": session_id})
        except (DatabaseUnavailable, PyMongoError):
            logger.warning("Session store unavailable; session %s… not deleted", session_id[:6])
