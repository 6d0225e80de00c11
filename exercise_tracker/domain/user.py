from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class ExerciseUser:
    """Registered username that exercises are logged against."""

    user_id: str
    username: str
    created_at: datetime
