"""
Process-wide settings.

Read once from the environment at startup (after load_dotenv() in main.py):
  MONGO_URI         database connection string (required in practice)
  MONGO_DB          database name                      (default: homestay)
  SESSION_SECRET    session cookie signing secret      (default: fallback_secret)
  SESSION_MAX_AGE   session lifetime in seconds        (default: 14 days)
  PORT              listen port                        (default: 3000)
  PUBLIC_DIR        static asset directory             (default: public)
  UPLOAD_DIR        uploaded photo directory           (default: public/uploads)
  REQUIRE_DATABASE  abort startup if the first connect fails (default: true)
  LOG_LEVEL         root log level                     (default: INFO)

Only presence is checked. A missing MONGO_URI surfaces later as a
connection failure.
"""

import logging
import os
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_SESSION_SECRET = "fallback_secret"
SESSION_COLLECTION = "sessions"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    mongo_uri: Optional[str] = None
    database_name: str = "homestay"
    session_secret: str = DEFAULT_SESSION_SECRET
    session_cookie: str = "homestay.sid"
    session_max_age: int = 14 * 24 * 60 * 60
    session_collection: str = SESSION_COLLECTION
    port: int = 3000
    public_dir: str = "public"
    upload_dir: str = os.path.join("public", "uploads")
    protected_prefix: str = "/host"
    login_path: str = "/login"
    require_database_on_startup: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        mongo_uri = os.environ.get("MONGO_URI") or None
        if mongo_uri is None:
            logger.warning("MONGO_URI is not set; database connection will fail")

        session_secret = os.environ.get("SESSION_SECRET") or DEFAULT_SESSION_SECRET
        if session_secret == DEFAULT_SESSION_SECRET:
            logger.warning("SESSION_SECRET is not set; using the fallback secret")

        return cls(
            mongo_uri=mongo_uri,
            database_name=os.environ.get("MONGO_DB", "homestay"),
            session_secret=session_secret,
            session_max_age=int(os.environ.get("SESSION_MAX_AGE", 14 * 24 * 60 * 60)),
            port=int(os.environ.get("PORT", 3000)),
            public_dir=os.environ.get("PUBLIC_DIR", "public"),
            upload_dir=os.environ.get("UPLOAD_DIR", os.path.join("public", "uploads")),
            require_database_on_startup=_env_flag("REQUIRE_DATABASE", True),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
