"""FastAPI dependencies shared by the routers."""

from typing import Optional

from fastapi import Depends, Request

from config import Settings
from errors import LoginRequired
from middleware.auth import get_auth
from models.auth import AuthContext, Authenticated
from models.user import User
from store import Repositories, get_repositories


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def auth_context(request: Request) -> AuthContext:
    return get_auth(request)


async def current_user(
    auth: AuthContext = Depends(auth_context),
    repos: Repositories = Depends(get_repositories),
) -> Optional[User]:
    """The logged-in user's document, or None for anonymous requests."""
    if not isinstance(auth, Authenticated) or auth.user_id is None:
        return None
    return await repos.users.get(auth.user_id)


async def require_user(user: Optional[User] = Depends(current_user)) -> User:
    if user is None:
        raise LoginRequired()
    return user
