"""Domain errors translated to HTTP responses in main.py."""


class NotFound(Exception):
    """A requested page or document does not exist."""


class DatabaseUnavailable(Exception):
    """The database has not been connected (or the last attempt failed)."""


class DuplicateEmail(Exception):
    pass


class LoginRequired(Exception):
    """Raised by handlers that need a user; answered with a redirect to /login."""
