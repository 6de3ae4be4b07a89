"""Per-sender rolling-window rate limiting with persisted request history."""

from mailreply.ratelimit.limiter import RateLimitDecision, RateLimiter
from mailreply.ratelimit.store import HistoryStore, JsonHistoryStore, SqliteHistoryStore

__all__ = [
    "HistoryStore",
    "JsonHistoryStore",
    "RateLimitDecision",
    "RateLimiter",
    "SqliteHistoryStore",
]
