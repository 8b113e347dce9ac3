from .match import Match, MatchEvent
from .sport import Sport
from .team import Team, TeamMember
from .tournament import Tournament
from .user import User

__all__ = [
    "User",
    "Sport",
    "Tournament",
    "Team",
    "TeamMember",
    "Match",
    "MatchEvent",
]
