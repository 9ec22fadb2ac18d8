"""
Error types raised by the leaderboard engine.
"""

from __future__ import annotations


class LeaderboardError(Exception):
    """Base class for all leaderboard failures."""


class ValidationError(LeaderboardError, ValueError):
    """Raised when a required request parameter is missing or malformed."""


class NotFoundError(LeaderboardError, LookupError):
    """Raised when a cohort lookup has nothing to return."""


class StoreError(LeaderboardError, RuntimeError):
    """Raised when the underlying record store fails a fetch/count/aggregate."""
