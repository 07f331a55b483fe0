from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict


class Authenticated(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["authenticated"] = "authenticated"
    user_id: Optional[str] = None

    @property
    def is_logged_in(self) -> bool:
        return True


class Anonymous(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["anonymous"] = "anonymous"

    @property
    def is_logged_in(self) -> bool:
        return False


AuthContext = Union[Authenticated, Anonymous]

ANONYMOUS = Anonymous()
