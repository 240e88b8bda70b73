"""
Ideathon Hub – SQLAlchemy ORM models package.

Imports all model classes so the app can discover them
through a single ``from app.models import *`` import.
"""

from app.models.user import Domain, User             # noqa: F401
from app.models.team import Team                     # noqa: F401
from app.models.track import Track                   # noqa: F401
from app.models.event_config import EventConfig      # noqa: F401
