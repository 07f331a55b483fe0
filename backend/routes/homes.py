import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Form
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from starlette.status import HTTP_302_FOUND

from dependencies import auth_context, current_user, require_user
from errors import NotFound
from models.auth import AuthContext
from models.booking import Booking
from models.home import Home
from models.user import User
from store import Repositories, get_repositories, new_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["store"])


# ---------- Response schemas ----------

class HomeListPage(BaseModel):
    page: str
    is_logged_in: bool
    homes: list[Home]


class HomeDetailPage(BaseModel):
    page: str = "home-detail"
    is_logged_in: bool
    home: Home
    is_favourite: bool = False


class BookingEntry(BaseModel):
    booking: Booking
    home: Optional[Home] = None
    nights: int
    total_price: Optional[float] = None


class BookingsPage(BaseModel):
    page: str = "bookings"
    is_logged_in: bool
    bookings: list[BookingEntry]
    errors: list[str] = []


# ---------- Listings ----------

@router.get("/", response_model=HomeListPage)
async def index(
    auth: AuthContext = Depends(auth_context),
    repos: Repositories = Depends(get_repositories),
):
    return HomeListPage(page="index", is_logged_in=auth.is_logged_in, homes=await repos.homes.list_all())


@router.get("/homes", response_model=HomeListPage)
async def home_list(
    auth: AuthContext = Depends(auth_context),
    repos: Repositories = Depends(get_repositories),
):
    return HomeListPage(page="home-list", is_logged_in=auth.is_logged_in, homes=await repos.homes.list_all())


@router.get("/homes/{home_id}", response_model=HomeDetailPage)
async def home_detail(
    home_id: str,
    auth: AuthContext = Depends(auth_context),
    user: Optional[User] = Depends(current_user),
    repos: Repositories = Depends(get_repositories),
):
    home = await repos.homes.get(home_id)
    if home is None:
        raise NotFound(home_id)
    is_favourite = user is not None and home.id in user.favourites
    return HomeDetailPage(is_logged_in=auth.is_logged_in, home=home, is_favourite=is_favourite)


# ---------- Bookings ----------

async def _booking_entries(repos: Repositories, user: User) -> list[BookingEntry]:
    bookings = await repos.bookings.list_for_user(user.id)
    homes = {h.id: h for h in await repos.homes.list_by_ids(list({b.home_id for b in bookings}))}
    entries = []
    for booking in bookings:
        home = homes.get(booking.home_id)
        entries.append(
            BookingEntry(
                booking=booking,
                home=home,
                nights=booking.nights,
                total_price=home.price_per_night * booking.nights if home else None,
            )
        )
    return entries


@router.get("/bookings", response_model=BookingsPage)
async def bookings(
    user: Optional[User] = Depends(current_user),
    repos: Repositories = Depends(get_repositories),
):
    """Anonymous visitors simply see an empty list."""
    if user is None:
        return BookingsPage(is_logged_in=False, bookings=[])
    return BookingsPage(is_logged_in=True, bookings=await _booking_entries(repos, user))


@router.post("/bookings")
async def create_booking(
    home_id: str = Form(...),
    check_in: date = Form(...),
    check_out: date = Form(...),
    guests: int = Form(1),
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
):
    home = await repos.homes.get(home_id)
    if home is None:
        raise NotFound(home_id)

    errors = []
    if check_out <= check_in:
        errors.append("Check-out must be after check-in")
    if guests < 1:
        errors.append("At least one guest is required")
    if errors:
        page = BookingsPage(is_logged_in=True, bookings=await _booking_entries(repos, user), errors=errors)
        return JSONResponse(page.model_dump(mode="json"), status_code=400)

    booking = Booking(
        id=new_id(),
        home_id=home.id,
        user_id=user.id,
        check_in=check_in,
        check_out=check_out,
        guests=guests,
    )
    await repos.bookings.add(booking)
    logger.info("User %s booked home %s for %d nights", user.id, home.id, booking.nights)
    return RedirectResponse("/bookings", status_code=HTTP_302_FOUND)


# ---------- Favourites ----------

@router.get("/favourites", response_model=HomeListPage)
async def favourites(
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
):
    homes = await repos.homes.list_by_ids(user.favourites)
    return HomeListPage(page="favourites", is_logged_in=True, homes=homes)


@router.post("/favourites")
async def add_favourite(
    home_id: str = Form(...),
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
):
    if await repos.homes.get(home_id) is None:
        raise NotFound(home_id)
    await repos.users.add_favourite(user.id, home_id)
    return RedirectResponse("/favourites", status_code=HTTP_302_FOUND)


@router.post("/favourites/{home_id}/delete")
async def remove_favourite(
    home_id: str,
    user: User = Depends(require_user),
    repos: Repositories = Depends(get_repositories),
):
    await repos.users.remove_favourite(user.id, home_id)
    return RedirectResponse("/favourites", status_code=HTTP_302_FOUND)
