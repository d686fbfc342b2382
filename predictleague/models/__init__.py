from predictleague.models.tables import (
    MATCH_FINISHED,
    MATCH_IN_PROGRESS,
    MATCH_SCHEDULED,
    MEMBER,
    MEMBER_ADMIN,
    ROLE_ADMIN,
    ROLE_USER,
    ActionLog,
    League,
    LeagueMessage,
    Match,
    Prediction,
    PrivateLeague,
    PrivateLeagueMember,
    Team,
    User,
)

__all__ = [
    "MATCH_FINISHED",
    "MATCH_IN_PROGRESS",
    "MATCH_SCHEDULED",
    "MEMBER",
    "MEMBER_ADMIN",
    "ROLE_ADMIN",
    "ROLE_USER",
    "ActionLog",
    "League",
    "LeagueMessage",
    "Match",
    "Prediction",
    "PrivateLeague",
    "PrivateLeagueMember",
    "Team",
    "User",
]
