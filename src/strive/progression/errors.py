"""Progression engine exceptions."""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for progression engine errors."""


class InvalidXPAward(ProgressionError, ValueError):
    """Raised before any write when an award has a negative amount or unknown source."""


class UserNotFoundError(ProgressionError, LookupError):
    """Raised when the target user row does not exist."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id
