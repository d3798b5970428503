"""
Utility modules for tutorgen
"""

from .database import (
    get_db,
    get_db_context,
    get_session_factory,
    init_db,
    close_db,
)
from .cache import (
    rate_limit,
    get_redis,
    close_redis,
)
from .dates import (
    day_index,
    ledger_day,
    utcnow,
)

__all__ = [
    # Database
    "get_db",
    "get_db_context",
    "get_session_factory",
    "init_db",
    "close_db",
    # Cache
    "rate_limit",
    "get_redis",
    "close_redis",
    # Dates
    "day_index",
    "ledger_day",
    "utcnow",
]
