"""
RizzedIn — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import chats, feed, matches, swipes, users
from app.api.admin import personas

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(feed.router, prefix="/feed", tags=["Feed"])
router.include_router(swipes.router, prefix="/swipes", tags=["Swipes"])
router.include_router(chats.router, prefix="/chats", tags=["AI Chat"])
router.include_router(matches.router, prefix="/matches", tags=["Matches"])
router.include_router(personas.router, prefix="/admin/personas", tags=["Admin - Personas"])
