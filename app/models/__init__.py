"""
RizzedIn — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.user import User
from app.models.chat import Chat, ChatState
from app.models.match import Match, Swipe

__all__ = [
    "User",
    "Chat",
    "ChatState",
    "Match",
    "Swipe",
]
