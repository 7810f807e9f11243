"""TaskRank domain — task snapshot and its closed enums."""

from taskrank.domain.task import (  # noqa: F401
    DEFAULT_USER_PRIORITY,
    EFFORT_BOOST,
    TaskEffort,
    TaskSnapshot,
    TaskStatus,
    as_utc,
    utcnow,
)

__all__ = [
    "DEFAULT_USER_PRIORITY",
    "EFFORT_BOOST",
    "TaskEffort",
    "TaskSnapshot",
    "TaskStatus",
    "as_utc",
    "utcnow",
]
