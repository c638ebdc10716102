"""API package exports."""
from . import routes_admin, routes_auth, routes_bookmarks, routes_ingest, routes_search

__all__ = [
    "routes_admin",
    "routes_auth",
    "routes_bookmarks",
    "routes_ingest",
    "routes_search",
]
