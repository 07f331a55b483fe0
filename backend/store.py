"""
Data access for homes, users and bookings.

Two interchangeable backends share the same async interface:
  - Mongo*Repository: collections "homes", "users", "bookings" on the
    application's ConnectionManager. Documents use the model id as `_id`.
  - Memory*Repository: plain dicts, for local development and tests.

Routes never touch these directly; they get a Repositories bundle from
app.state through get_repositories().
"""

import functools
import logging
import uuid
from typing import Optional, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from database import ConnectionManager
from errors import DatabaseUnavailable
from models.booking import Booking
from models.home import Home
from models.user import User

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def new_id() -> str:
    return uuid.uuid4().hex


def _to_doc(model: BaseModel) -> dict:
    doc = model.model_dump(mode="json")
    doc["_id"] = doc.pop("id")
    return doc


def _from_doc(cls: Type[M], doc: Optional[dict]) -> Optional[M]:
    if doc is None:
        return None
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return cls.model_validate(data)


# ---------- MongoDB ----------

def _database_errors(method):
    """Report driver failures as DatabaseUnavailable (answered with 503)."""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except PyMongoError as e:
            logger.error("%s.%s failed: %s: %s", type(self).__name__, method.__name__, type(e).__name__, e)
            raise DatabaseUnavailable(str(e)) from e

    return wrapper


class _MongoRepository:
    collection_name: str

    def __init__(self, connection: ConnectionManager):
        self._connection = connection

    @property
    def collection(self):
        return self._connection.database[self.collection_name]


class MongoHomeRepository(_MongoRepository):
    collection_name = "homes"

    @_database_errors
    async def list_all(self) -> list[Home]:
        return [_from_doc(Home, doc) async for doc in self.collection.find().sort("name")]

    @_database_errors
    async def list_by_host(self, host_id: str) -> list[Home]:
        cursor = self.collection.find({"host_id": host_id}).sort("name")
        return [_from_doc(Home, doc) async for doc in cursor]

    @_database_errors
    async def list_by_ids(self, ids: list[str]) -> list[Home]:
        if not ids:
            return []
        cursor = self.collection.find({"_id": {"$in": ids}})
        return [_from_doc(Home, doc) async for doc in cursor]

    @_database_errors
    async def get(self, home_id: str) -> Optional[Home]:
        return _from_doc(Home, await self.collection.find_one({"_id": home_id}))

    @_database_errors
    async def add(self, home: Home) -> Home:
        await self.collection.insert_one(_to_doc(home))
        return home

    @_database_errors
    async def update(self, home: Home) -> Home:
        await self.collection.replace_one({"_id": home.id}, _to_doc(home))
        return home

    @_database_errors
    async def delete(self, home_id: str) -> Optional[Home]:
        return _from_doc(Home, await self.collection.find_one_and_delete({"_id": home_id}))


class MongoUserRepository(_MongoRepository):
    collection_name = "users"

    @_database_errors
    async def get(self, user_id: str) -> Optional[User]:
        return _from_doc(User, await self.collection.find_one({"_id": user_id}))

    @_database_errors
    async def find_by_email(self, email: str) -> Optional[User]:
        return _from_doc(User, await self.collection.find_one({"email": email.lower()}))

    @_database_errors
    async def add(self, user: User) -> User:
        await self.collection.insert_one(_to_doc(user))
        return user

    @_database_errors
    async def add_favourite(self, user_id: str, home_id: str) -> None:
        await self.collection.update_one({"_id": user_id}, {"$addToSet": {"favourites": home_id}})

    @_database_errors
    async def remove_favourite(self, user_id: str, home_id: str) -> None:
        await self.collection.update_one({"_id": user_id}, {"$pull": {"favourites": home_id}})

    @_database_errors
    async def remove_favourite_everywhere(self, home_id: str) -> None:
        await self.collection.update_many({"favourites": home_id}, {"$pull": {"favourites": home_id}})


class MongoBookingRepository(_MongoRepository):
    collection_name = "bookings"

    @_database_errors
    async def list_for_user(self, user_id: str) -> list[Booking]:
        cursor = self.collection.find({"user_id": user_id}).sort("check_in")
        return [_from_doc(Booking, doc) async for doc in cursor]

    @_database_errors
    async def add(self, booking: Booking) -> Booking:
        await self.collection.insert_one(_to_doc(booking))
        return booking

    @_database_errors
    async def delete_for_home(self, home_id: str) -> int:
        result = await self.collection.delete_many({"home_id": home_id})
        return result.deleted_count


# ---------- In-memory ----------

class MemoryHomeRepository:
    def __init__(self):
        self.homes: dict[str, Home] = {}

    async def list_all(self) -> list[Home]:
        return sorted(self.homes.values(), key=lambda h: h.name)

    async def list_by_host(self, host_id: str) -> list[Home]:
        return [h for h in await self.list_all() if h.host_id == host_id]

    async def list_by_ids(self, ids: list[str]) -> list[Home]:
        return [self.homes[i] for i in ids if i in self.homes]

    async def get(self, home_id: str) -> Optional[Home]:
        return self.homes.get(home_id)

    async def add(self, home: Home) -> Home:
        self.homes[home.id] = home
        return home

    async def update(self, home: Home) -> Home:
        self.homes[home.id] = home
        return home

    async def delete(self, home_id: str) -> Optional[Home]:
        return self.homes.pop(home_id, None)


class MemoryUserRepository:
    def __init__(self):
        self.users: dict[str, User] = {}

    async def get(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def find_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        return next((u for u in self.users.values() if u.email == email), None)

    async def add(self, user: User) -> User:
        self.users[user.id] = user
        return user

    async def add_favourite(self, user_id: str, home_id: str) -> None:
        user = self.users.get(user_id)
        if user is not None and home_id not in user.favourites:
            user.favourites.append(home_id)

    async def remove_favourite(self, user_id: str, home_id: str) -> None:
        user = self.users.get(user_id)
        if user is not None and home_id in user.favourites:
            user.favourites.remove(home_id)

    async def remove_favourite_everywhere(self, home_id: str) -> None:
        for user in self.users.values():
            if home_id in user.favourites:
                user.favourites.remove(home_id)


class MemoryBookingRepository:
    def __init__(self):
        self.bookings: dict[str, Booking] = {}

    async def list_for_user(self, user_id: str) -> list[Booking]:
        found = [b for b in self.bookings.values() if b.user_id == user_id]
        return sorted(found, key=lambda b: b.check_in)

    async def add(self, booking: Booking) -> Booking:
        self.bookings[booking.id] = booking
        return booking

    async def delete_for_home(self, home_id: str) -> int:
        doomed = [i for i, b in self.bookings.items() if b.home_id == home_id]
        for booking_id in doomed:
            del self.bookings[booking_id]
        return len(doomed)


# ---------- Bundle ----------

class Repositories:
    def __init__(self, homes, users, bookings):
        self.homes = homes
        self.users = users
        self.bookings = bookings

    @classmethod
    def mongo(cls, connection: ConnectionManager) -> "Repositories":
        return cls(
            homes=MongoHomeRepository(connection),
            users=MongoUserRepository(connection),
            bookings=MongoBookingRepository(connection),
        )

    @classmethod
    def memory(cls) -> "Repositories":
        return cls(
            homes=MemoryHomeRepository(),
            users=MemoryUserRepository(),
            bookings=MemoryBookingRepository(),
        )


def get_repositories(request: Request) -> Repositories:
    return request.app.state.repositories
