"""
Store-backed cookie sessions.

Same shape as Starlette's SessionMiddleware, except the cookie holds only a
signed session id and the data lives in a SessionStore (MongoDB in
production). Downstream code uses `request.session` as usual.

Policy:
  - a client without a valid session gets a new one on its first response,
    even if nothing was written to it
  - an existing session is only written back when it was modified
  - a session emptied by `clear()` is deleted and its cookie expired
"""

import secrets
from typing import Any

import itsdangerous
from itsdangerous.exc import BadSignature
from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from sessions import SessionStore


class TrackedSession(dict):
    """dict that remembers whether it was written to."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.modified = False

    def __setitem__(self, key, value):
        self.modified = True
        super().__setitem__(key, value)

    def __delitem__(self, key):
        self.modified = True
        super().__delitem__(key)

    def clear(self):
        self.modified = True
        super().clear()

    def pop(self, key, *default):
        self.modified = True
        return super().pop(key, *default)

    def setdefault(self, key, default=None):
        if key not in self:
            self.modified = True
        return super().setdefault(key, default)

    def update(self, *args, **kwargs):
        self.modified = True
        super().update(*args, **kwargs)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class ServerSessionMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        store: SessionStore,
        secret_key: str,
        session_cookie: str = "homestay.sid",
        max_age: int = 14 * 24 * 60 * 60,
        path: str = "/",
        same_site: str = "lax",
        https_only: bool = False,
    ) -> None:
        self.app = app
        self.store = store
        self.signer = itsdangerous.TimestampSigner(str(secret_key))
        self.session_cookie = session_cookie
        self.max_age = max_age
        self.path = path
        self.security_flags = "httponly; samesite=" + same_site
        if https_only:
            self.security_flags += "; secure"

    def _unsign(self, cookie: str):
        try:
            return self.signer.unsign(cookie, max_age=self.max_age).decode("utf-8")
        except BadSignature:
            return None

    def _cookie_header(self, value: str, max_age: int) -> str:
        return "{cookie}={value}; path={path}; Max-Age={max_age}; {flags}".format(
            cookie=self.session_cookie,
            value=value,
            path=self.path,
            max_age=max_age,
            flags=self.security_flags,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        connection = HTTPConnection(scope)
        session_id = None
        data = None

        if self.session_cookie in connection.cookies:
            session_id = self._unsign(connection.cookies[self.session_cookie])
            if session_id is not None:
                data = await self.store.load(session_id)

        is_new = data is None
        session = TrackedSession(data or {})
        scope["session"] = session

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)

                if is_new:
                    sid = new_session_id()
                    await self.store.save(sid, dict(session), self.max_age)
                    signed = self.signer.sign(sid.encode("utf-8")).decode("utf-8")
                    headers.append("Set-Cookie", self._cookie_header(signed, self.max_age))
                elif session.modified and not session:
                    await self.store.delete(session_id)
                    headers.append(
                        "Set-Cookie",
                        self._cookie_header("null", 0) + "; expires=Thu, 01 Jan 1970 00:00:00 GMT",
                    )
                elif session.modified:
                    await self.store.save(session_id, dict(session), self.max_age)

            await send(message)

        await self.app(scope, receive, send_wrapper)
