from starlette.middleware.base import BaseHTTPMiddleware

from database import ConnectionManager


class DatabaseGuardMiddleware(BaseHTTPMiddleware):
    """
    Make sure the database is connected before handling a request.

    No-op once connected. On failure the manager logs and the request goes
    on; handlers that need the database answer 503.
    """

    def __init__(self, app, connection: ConnectionManager):
        super().__init__(app)
        self.connection = connection

    async def dispatch(self, request, call_next):
        await self.connection.ensure_connected()
        return await call_next(request)
