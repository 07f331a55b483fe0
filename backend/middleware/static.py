"""
Static asset serving ahead of the session layer.

Each mount maps a URL prefix to a directory. A GET/HEAD whose path lies under
a prefix and names a regular file inside that directory is answered directly
with the file. Everything else (missing files, directories, other methods)
falls through to the next layer; this middleware never answers 404.
"""

import os
import stat
from typing import Iterable

from starlette.concurrency import run_in_threadpool
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Scope, Send


def _relative_path(path: str, prefix: str):
    """Path below `prefix`, or None if `path` is not under it."""
    prefix = prefix.rstrip("/")
    if prefix and not (path == prefix or path.startswith(prefix + "/")):
        return None
    sub = path[len(prefix):]
    return os.path.normpath(os.path.join(*sub.split("/")))


class StaticAssetMiddleware:
    def __init__(self, app: ASGIApp, mounts: Iterable[tuple[str, str]]) -> None:
        self.app = app
        # Longest prefix first so /uploads wins over /.
        self.mounts = [
            (prefix, StaticFiles(directory=directory, check_dir=False))
            for prefix, directory in sorted(mounts, key=lambda m: len(m[0]), reverse=True)
        ]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        for prefix, files in self.mounts:
            rel = _relative_path(scope["path"], prefix)
            if rel is None:
                continue
            full_path, stat_result = await run_in_threadpool(files.lookup_path, rel)
            if stat_result is not None and stat.S_ISREG(stat_result.st_mode):
                response = files.file_response(full_path, stat_result, scope)
                await response(scope, receive, send)
                return

        await self.app(scope, receive, send)
