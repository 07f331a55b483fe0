from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_302_FOUND

from config import Settings
from database import ConnectionManager
from errors import DatabaseUnavailable, LoginRequired, NotFound
from middleware import (
    AuthContextMiddleware,
    DatabaseGuardMiddleware,
    ProtectedPrefixMiddleware,
    ServerSessionMiddleware,
    StaticAssetMiddleware,
)
from routes import auth, homes, host
from sessions import MongoSessionStore, SessionStore
from store import Repositories

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def not_found_response(request: Request) -> JSONResponse:
    return JSONResponse(
        {"page": "404", "detail": "Page Not Found", "path": request.url.path},
        status_code=404,
    )


def create_app(
    settings: Optional[Settings] = None,
    connection: Optional[ConnectionManager] = None,
    session_store: Optional[SessionStore] = None,
    repositories: Optional[Repositories] = None,
    wait_for_database: bool = False,
) -> FastAPI:
    """
    Composition root.

    wait_for_database=True is the long-running server policy: startup is
    aborted if the first connection fails (when the settings require it).
    Otherwise the first connect is attempted at startup and on every request
    until it succeeds, and failures are only logged.
    """
    # Compare with None: an empty MemorySessionStore is falsy.
    if settings is None:
        settings = Settings.from_env()
    if connection is None:
        connection = ConnectionManager(settings.mongo_uri, settings.database_name)
    if session_store is None:
        session_store = MongoSessionStore(connection, settings.session_collection)
    if repositories is None:
        repositories = Repositories.mongo(connection)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        connected = await connection.ensure_connected()
        if not connected and wait_for_database and settings.require_database_on_startup:
            raise RuntimeError("Could not connect to MongoDB; not starting the listener")
        yield
        await connection.close()

    app = FastAPI(title="Homestay", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.connection = connection
    app.state.repositories = repositories

    app.include_router(auth.router)
    app.include_router(homes.router)
    app.include_router(host.router)

    # add_middleware wraps, so the last one added runs first:
    # static -> database guard -> session -> auth context -> /host gate -> routes
    app.add_middleware(
        ProtectedPrefixMiddleware,
        prefix=settings.protected_prefix,
        login_path=settings.login_path,
    )
    app.add_middleware(AuthContextMiddleware)
    app.add_middleware(
        ServerSessionMiddleware,
        store=session_store,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
    )
    app.add_middleware(DatabaseGuardMiddleware, connection=connection)
    app.add_middleware(
        StaticAssetMiddleware,
        mounts=[("/", settings.public_dir), ("/uploads", settings.upload_dir)],
    )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return not_found_response(request)
        return await http_exception_handler(request, exc)

    @app.exception_handler(NotFound)
    async def handle_not_found(request: Request, exc: NotFound):
        return not_found_response(request)

    @app.exception_handler(LoginRequired)
    async def handle_login_required(request: Request, exc: LoginRequired):
        return RedirectResponse(settings.login_path, status_code=HTTP_302_FOUND)

    @app.exception_handler(DatabaseUnavailable)
    async def handle_database_unavailable(request: Request, exc: DatabaseUnavailable):
        logger.warning("%s %s: database unavailable", request.method, request.url.path)
        return JSONResponse({"detail": "Database unavailable"}, status_code=503)

    return app


_app: Optional[FastAPI] = None


def __getattr__(name: str):
    # `main:app` for function-per-invocation hosts. Built on first access, so
    # the listener started by main() is the only app in its process.
    global _app
    if name == "app":
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    server_app = create_app(settings, wait_for_database=True)
    uvicorn.run(server_app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
