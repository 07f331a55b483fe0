from models.auth import ANONYMOUS, Anonymous, AuthContext, Authenticated
from models.booking import Booking
from models.home import Home
from models.user import PublicUser, User

__all__ = [
    "ANONYMOUS",
    "Anonymous",
    "AuthContext",
    "Authenticated",
    "Booking",
    "Home",
    "PublicUser",
    "User",
]
