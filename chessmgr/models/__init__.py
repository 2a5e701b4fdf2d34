from chessmgr.models.models import (
    INITIAL_RATING,
    MAX_RATING,
    MIN_RATING,
    TERMINAL_RESULTS,
    AuditLog,
    Inscription,
    Match,
    MatchResult,
    TimestampedBase,
    Tournament,
    TournamentFormat,
    TournamentStatus,
    User,
    UserRole,
)

__all__ = [
    "INITIAL_RATING",
    "MAX_RATING",
    "MIN_RATING",
    "TERMINAL_RESULTS",
    "AuditLog",
    "Inscription",
    "Match",
    "MatchResult",
    "TimestampedBase",
    "Tournament",
    "TournamentFormat",
    "TournamentStatus",
    "User",
    "UserRole",
]
