"""
Authentication context and the protected-prefix gate.

AuthContextMiddleware derives an AuthContext from the session once per
request and stores it on request.state.auth. ProtectedPrefixMiddleware reads
that context and either lets a request under the protected prefix through or
redirects it to the login page.

Both must sit inside ServerSessionMiddleware. If the gate ran before the
session was parsed, every request would look anonymous.
"""

import logging
from typing import Any, Mapping, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse
from starlette.status import HTTP_302_FOUND

from models.auth import ANONYMOUS, AuthContext, Authenticated

logger = logging.getLogger(__name__)


def derive_auth(session: Optional[Mapping[str, Any]]) -> AuthContext:
    """Authenticated iff the session exists and its isLoggedIn flag is truthy."""
    if session and session.get("isLoggedIn"):
        return Authenticated(user_id=session.get("userId"))
    return ANONYMOUS


def get_auth(request: Request) -> AuthContext:
    return getattr(request.state, "auth", ANONYMOUS)


def is_under_prefix(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


class AuthContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        session = request.scope.get("session")
        request.state.auth = derive_auth(session)
        return await call_next(request)


class ProtectedPrefixMiddleware(BaseHTTPMiddleware):
    """
    Gate a URL subtree behind a logged-in session.

    Requests outside the prefix pass through untouched. Requests inside it
    reach the wrapped app only when the auth context is logged in; otherwise
    they get a 302 to the login path and nothing downstream runs.
    """

    def __init__(self, app, prefix: str = "/host", login_path: str = "/login"):
        super().__init__(app)
        self.prefix = prefix
        self.login_path = login_path

    async def dispatch(self, request, call_next):
        if not is_under_prefix(request.url.path, self.prefix):
            return await call_next(request)

        if not get_auth(request).is_logged_in:
            logger.debug("Redirecting anonymous request for %s to %s", request.url.path, self.login_path)
            return RedirectResponse(self.login_path, status_code=HTTP_302_FOUND)

        return await call_next(request)
