"""
Study Scheduling Services

- CardScheduler: FSRS preview/commit for one parameter set
- ParameterCache: per-user compiled schedulers with TTL and invalidation
- ReviewQueueBuilder: daily-quota aware queue building and review submission
- Storage ports and their SQLAlchemy adapters

The SQL adapters and the factory are imported from their modules directly
(deckstudy.services.learning.stores / .factory) so the core can be used
without a database driver.
"""

from deckstudy.services.learning.fsrs import CardScheduler
from deckstudy.services.learning.parameter_cache import ParameterCache
from deckstudy.services.learning.ports import AuditLog, CardStore, SettingsStore
from deckstudy.services.learning.quotas import DailyQuota, resolve_daily_limits
from deckstudy.services.learning.review_queue import ReviewQueueBuilder

__all__ = [
    "CardScheduler",
    "ParameterCache",
    "ReviewQueueBuilder",
    "DailyQuota",
    "resolve_daily_limits",
    "SettingsStore",
    "CardStore",
    "AuditLog",
]
