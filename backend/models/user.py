from typing import Literal

from pydantic import BaseModel, Field

UserType = Literal["guest", "host"]


class User(BaseModel):
    id: str
    first_name: str
    last_name: str = ""
    email: str
    password_hash: str
    user_type: UserType = "guest"
    favourites: list[str] = Field(default_factory=list)


class PublicUser(BaseModel):
    id: str
    first_name: str
    last_name: str = ""
    email: str
    user_type: UserType = "guest"
