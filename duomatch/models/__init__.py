"""
DuoMatch — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from duomatch.models.user import User
from duomatch.models.duo import Duo, Invite
from duomatch.models.match import Match, Swipe
from duomatch.models.message import Message

__all__ = [
    "User",
    "Duo",
    "Invite",
    "Match",
    "Swipe",
    "Message",
]
