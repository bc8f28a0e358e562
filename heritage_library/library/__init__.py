"""
Resource library package.

Holds the in-memory category store and everything built on top of it:
listing and search views, batch operations, exports, media rules,
statistics and keyword matching. ``router`` exposes them under
``/api/resources``.
"""

from .router import router as library_router  # noqa: F401
