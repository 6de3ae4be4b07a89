"""Retry helpers for best-effort mailbox operations."""

from mailreply.resilience.retry import best_effort_retry

__all__ = ["best_effort_retry"]
