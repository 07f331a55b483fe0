from middleware.auth import AuthContextMiddleware, ProtectedPrefixMiddleware
from middleware.db_guard import DatabaseGuardMiddleware
from middleware.session import ServerSessionMiddleware
from middleware.static import StaticAssetMiddleware

__all__ = [
    "AuthContextMiddleware",
    "DatabaseGuardMiddleware",
    "ProtectedPrefixMiddleware",
    "ServerSessionMiddleware",
    "StaticAssetMiddleware",
]
