"""Domain-level record contracts shared by the service and repository."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field


class NewUser(BaseModel):
    """Schema a user document must satisfy before it is written."""

    username: str = Field(..., min_length=1)


class ExerciseRecord(BaseModel):
    """Schema an exercise document must satisfy before it is written."""

    user_id: str
    description: str = Field(..., min_length=1)
    duration: int = Field(..., ge=1)
    performed_at: datetime


@dataclass(frozen=True, slots=True)
class DateBound:
    """One side of a date range filter.

    ``value`` is ``None`` when the caller supplied a date that could not be
    parsed. Such a bound is kept in the filter and compares as unknown, so no
    stored exercise satisfies it.
    """

    value: datetime | None


@dataclass(slots=True)
class ExerciseQuery:
    """Filter applied to a user's exercises."""

    user_id: str
    date_from: DateBound | None = None
    date_to: DateBound | None = None
    limit: int = 0
    sort_by_date: bool = False
