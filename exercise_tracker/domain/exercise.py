from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .user import ExerciseUser


@dataclass(slots=True)
class Exercise:
    """A single timed exercise entry belonging to a user."""

    exercise_id: str
    user_id: str
    description: str
    duration: int
    performed_at: datetime


@dataclass(slots=True)
class UserHistory:
    """A user together with a slice of their exercise log."""

    user: ExerciseUser
    exercises: list[Exercise]
