"""Progression engine exceptions."""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for errors raised by the progression engine."""


class UserNotFoundError(ProgressionError):
    """A task event referenced a user the directory does not know."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id
