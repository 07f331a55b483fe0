"""
Host-side listing management, mounted under /host.

Access is decided by ProtectedPrefixMiddleware before any of these handlers
run; here we only resolve the current user and enforce ownership. A home
that belongs to someone else is reported as not found.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from starlette.status import HTTP_302_FOUND

from config import Settings
from dependencies import get_settings, require_user
from errors import NotFound
from models.home import Home
from models.user import PublicUser, User
from store import Repositories, get_repositories, new_id
from uploads import PendingUpload, handle_upload, remove_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/host", tags=["host"])

photo_upload = handle_upload("photo")


# ---------- Response schemas ----------

class HostHomesPage(BaseModel):
    page: str
    is_logged_in: bool = True
    host: PublicUser
    homes: list[Home]


class EditHomePage(BaseModel):
    page: str = "edit-home"
    is_logged_in: bool = True
    editing: bool
    home: Optional[Home] = None


async def _own_home(repos: Repositories, user: User, home_id: str) -> Home:
    home = await repos.homes.get(home_id)
    if home is None or home.host_id != user.id:
        raise NotFound(home_id)
    return home


def _public(user: User) -> PublicUser:
    return PublicUser(**user.model_dump(include=set(PublicUser.model_fields)))


# ---------- Endpoints ----------

@router.get("/dashboard", response_model=HostHomesPage)
async def dashboard(
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
):
    homes = await repos.homes.list_by_host(user.id)
    return HostHomesPage(page="host-dashboard", host=_public(user), homes=homes)


@router.get("/host-home-list", response_model=HostHomesPage)
async def host_home_list(
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
):
    homes = await repos.homes.list_by_host(user.id)
    return HostHomesPage(page="host-home-list", host=_public(user), homes=homes)


@router.get("/add-home", response_model=EditHomePage)
async def get_add_home(user: User = Depends(require_user)):
    return EditHomePage(editing=False)


@router.post("/add-home")
async def post_add_home(
    name: str = Form(...),
    price_per_night: float = Form(..., ge=0),
    location: str = Form(...),
    rating: float = Form(0, ge=0, le=5),
    description: str = Form(""),
    photo: Optional[PendingUpload] = Depends(photo_upload),
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
):
    stored = await photo.save() if photo is not None else None
    home = Home(
        id=new_id(),
        name=name,
        price_per_night=price_per_night,
        location=location,
        rating=rating,
        description=description,
        photo=stored.url if stored else None,
        host_id=user.id,
    )
    try:
        await repos.homes.add(home)
    except Exception:
        if stored is not None:
            remove_upload(stored.url, settings.upload_dir)
        raise
    logger.info("Host %s added home %s", user.id, home.id)
    return RedirectResponse("/host/host-home-list", status_code=HTTP_302_FOUND)


@router.get("/edit-home/{home_id}", response_model=EditHomePage)
async def get_edit_home(
    home_id: str,
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
):
    return EditHomePage(editing=True, home=await _own_home(repos, user, home_id))


@router.post("/edit-home")
async def post_edit_home(
    id: str = Form(...),
    name: str = Form(...),
    price_per_night: float = Form(..., ge=0),
    location: str = Form(...),
    rating: float = Form(0, ge=0, le=5),
    description: str = Form(""),
    photo: Optional[PendingUpload] = Depends(photo_upload),
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
):
    """Updates a home; a new photo replaces (and deletes) the old one."""
    home = await _own_home(repos, user, id)

    stored = await photo.save() if photo is not None else None
    updated = home.model_copy(
        update={
            "name": name,
            "price_per_night": price_per_night,
            "location": location,
            "rating": rating,
            "description": description,
            "photo": stored.url if stored else home.photo,
        }
    )
    try:
        await repos.homes.update(Home.model_validate(updated.model_dump()))
    except Exception:
        if stored is not None:
            remove_upload(stored.url, settings.upload_dir)
        raise
    if stored is not None:
        remove_upload(home.photo, settings.upload_dir)
    return RedirectResponse("/host/host-home-list", status_code=HTTP_302_FOUND)


@router.post("/delete-home/{home_id}")
async def post_delete_home(
    home_id: str,
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
):
    home = await _own_home(repos, user, home_id)
    await repos.homes.delete(home.id)
    await repos.bookings.delete_for_home(home.id)
    await repos.users.remove_favourite_everywhere(home.id)
    remove_upload(home.photo, settings.upload_dir)
    logger.info("Host %s deleted home %s", user.id, home.id)
    return RedirectResponse("/host/host-home-list", status_code=HTTP_302_FOUND)
