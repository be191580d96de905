"""API routers."""
from . import admin, auth, messages, notices, opportunities, pages

__all__ = ["admin", "auth", "messages", "notices", "opportunities", "pages"]
