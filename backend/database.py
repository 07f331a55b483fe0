"""
MongoDB connection lifecycle.

ConnectionManager establishes a single client lazily and memoizes success:
once CONNECTED, every later ensure_connected() call returns without I/O.
Failures are logged and reported through the return value, never raised, so
static assets and error pages keep being served while the database is down.

The manager is created by the composition root (main.create_app) and handed
to whatever needs database access; there is no module-level connection.
"""

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Optional

from motor.motor_asyncio import AsyncIOMotorClient

from errors import DatabaseUnavailable

logger = logging.getLogger(__name__)

SERVER_SELECTION_TIMEOUT_MS = 5000

ClientFactory = Callable[[Optional[str]], Awaitable[Any]]


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


async def motor_client_factory(uri: Optional[str]) -> AsyncIOMotorClient:
    """Open a Motor client and ping the server so failures surface here."""
    if not uri:
        raise ValueError("MONGO_URI is not configured")
    client = AsyncIOMotorClient(uri, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)
    try:
        await client.admin.command("ping")
    except Exception:
        client.close()
        raise
    return client


class ConnectionManager:
    def __init__(
        self,
        uri: Optional[str],
        database_name: str,
        client_factory: ClientFactory = motor_client_factory,
    ):
        self._uri = uri
        self._database_name = database_name
        self._client_factory = client_factory
        self._client = None
        self._attempt: Optional["asyncio.Future[bool]"] = None
        self.state = ConnectionState.DISCONNECTED
        self.connect_attempts = 0

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def database(self):
        if not self.is_connected:
            raise DatabaseUnavailable("database is not connected")
        return self._client.get_database(self._database_name)

    async def ensure_connected(self) -> bool:
        """
        Connect once; later calls are no-ops.

        Overlapping callers await the same in-flight attempt and get its
        result, whether it succeeds or fails. Returns True when connected.
        """
        if self.is_connected:
            return True

        if self._attempt is None:
            self._attempt = asyncio.ensure_future(self._connect())
            self._attempt.add_done_callback(self._clear_attempt)
        return await asyncio.shield(self._attempt)

    def _clear_attempt(self, attempt: "asyncio.Future[bool]") -> None:
        if self._attempt is attempt:
            self._attempt = None

    async def _connect(self) -> bool:
        self.state = ConnectionState.CONNECTING
        self.connect_attempts += 1
        try:
            self._client = await self._client_factory(self._uri)
        except Exception as e:
            self.state = ConnectionState.DISCONNECTED
            self._client = None
            logger.error("MongoDB connection error: %s: %s", type(e).__name__, e)
            return False

        self.state = ConnectionState.CONNECTED
        logger.info("Connected to MongoDB (database=%s)", self._database_name)
        return True

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self.state = ConnectionState.DISCONNECTED
