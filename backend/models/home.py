from typing import Optional

from pydantic import BaseModel, Field


class Home(BaseModel):
    id: str
    name: str
    price_per_night: float = Field(ge=0)
    location: str
    rating: float = Field(default=0, ge=0, le=5)
    description: str = ""
    photo: Optional[str] = None     # always a /uploads/<file> URL
    host_id: Optional[str] = None
