"""Rolling 24-hour per-sender request limiter.

Every check is a single read-modify-write on the history store: prune old
timestamps (and senders left with none), compare, and on acceptance append
the current time.  An accepted message consumes exactly one slot.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from pydantic import BaseModel, ConfigDict

from mailreply.ratelimit.store import History, HistoryStore

logger = structlog.get_logger()

WINDOW_SECONDS = 24 * 60 * 60


class RateLimitDecision(BaseModel):
    """Result of a rate-limit check.

    ``count`` is the number of requests inside the window *before* this one.
    ``retry_after`` (seconds) is only set on rejection.
    """

    model_config = ConfigDict(frozen=True)

    accepted: bool
    sender: str
    count: int
    limit: int
    retry_after: float | None = None


def prune_history(history: History, cutoff: float) -> bool:
    """Drop timestamps older than *cutoff* and senders left empty, in place.

    Returns:
        ``True`` if anything was removed.
    """
    modified = False
    for sender in list(history):
        kept = [stamp for stamp in history[sender] if stamp >= cutoff]
        if len(kept) != len(history[sender]):
            modified = True
        if kept:
            history[sender] = kept
        else:
            del history[sender]
            modified = True
    return modified


def sender_key(sender: str) -> str:
    return sender.strip().lower()


class RateLimiter:
    """Gate requests per sender within a rolling window.

    Args:
        store: Persisted history.
        daily_limit: Accepted requests allowed per sender per window.  A
            limit of zero rejects everything.
        window_seconds: Length of the rolling window.
        clock: Returns the current POSIX time; injectable for tests.
    """

    def __init__(
        self,
        store: HistoryStore,
        daily_limit: int,
        window_seconds: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._daily_limit = daily_limit
        self._window = window_seconds
        self._clock = clock

    @property
    def daily_limit(self) -> int:
        return self._daily_limit

    def record_if_allowed(self, sender: str) -> RateLimitDecision:
        """Record a request from *sender* if the limit allows it.

        Args:
            sender: The sender address (compared case-insensitively).

        Returns:
            An accepted decision (the request was recorded) or a rejected one
            carrying the current count and time until a slot frees up.
        """
        key = sender_key(sender)
        now = self._clock()

        with self._store.transaction() as history:
            prune_history(history, now - self._window)
            stamps = history.get(key, [])
            count = len(stamps)

            if count >= self._daily_limit:
                retry_after = max(0.0, min(stamps) + self._window - now) if stamps else None
                logger.warning(
                    "rate_limit_exceeded", sender=key, count=count, limit=self._daily_limit
                )
                return RateLimitDecision(
                    accepted=False,
                    sender=key,
                    count=count,
                    limit=self._daily_limit,
                    retry_after=retry_after,
                )

            history.setdefault(key, []).append(now)

        logger.debug("rate_limit_recorded", sender=key, count=count + 1, limit=self._daily_limit)
        return RateLimitDecision(
            accepted=True, sender=key, count=count, limit=self._daily_limit
        )

    def request_count(self, sender: str) -> int:
        """Requests from *sender* inside the current window (read-only)."""
        cutoff = self._clock() - self._window
        return sum(1 for stamp in self._store.load().get(sender_key(sender), []) if stamp >= cutoff)
