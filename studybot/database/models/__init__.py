from .user import User, UserRole, display_name
from .zone import Zone
from .study_session import SessionSource, StudySession
from .weekly_stat import WeeklyStat

__all__ = [
    "User",
    "UserRole",
    "display_name",
    "Zone",
    "SessionSource",
    "StudySession",
    "WeeklyStat",
]
