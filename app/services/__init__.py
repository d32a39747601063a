"""Service layer helpers for statistics, engagement tracking, and storage."""

from . import demo_accounts, engagement, stats, storage

__all__ = [
    "demo_accounts",
    "engagement",
    "stats",
    "storage",
]
