from datetime import date, datetime, timezone

from pydantic import BaseModel, Field


class Booking(BaseModel):
    id: str
    home_id: str
    user_id: str
    check_in: date
    check_out: date
    guests: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days
