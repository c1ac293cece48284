"""API routers."""

from archibill.routers.account import router as account_router
from archibill.routers.admin import router as admin_router
from archibill.routers.auth import router as auth_router
from archibill.routers.practice import router as practice_router

__all__ = [
    "account_router",
    "admin_router",
    "auth_router",
    "practice_router",
]
