"""Exercise log workflows: request validation, query construction and store access."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import ValidationError

from .contracts import DateBound, ExerciseQuery, ExerciseRecord, NewUser
from .exercise import Exercise, UserHistory
from .parsing import is_valid_id, parse_date, parse_int
from .user import ExerciseUser
from ..repository import RepositoryError

logger = logging.getLogger(__name__)


class ExerciseStore(Protocol):
    async def find_user_by_username(self, username: str) -> ExerciseUser | None: ...

    async def get_user(self, user_id: str) -> ExerciseUser | None: ...

    async def create_user(self, username: str) -> ExerciseUser | None: ...

    async def list_users(self) -> list[ExerciseUser]: ...

    async def create_exercise(self, record: ExerciseRecord) -> Exercise: ...

    async def list_exercises(self, query: ExerciseQuery) -> list[Exercise]: ...


class LogRequestError(ValueError):
    """Anticipated failure reported to the client inside a 200 ``error`` payload."""


def _present(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


class ExerciseLogService:
    """User registration and exercise logging backed by the document store.

    Every anticipated failure is raised as :class:`LogRequestError`, including
    records that fail their schema before being written.
    """

    def __init__(self, repository: ExerciseStore) -> None:
        """Store the repository used for every read and write."""
        self._repository = repository

    async def register_user(self, username: Any) -> ExerciseUser:
        """Create a user unless the username is empty or already registered."""
        if username == "":
            raise LogRequestError("username is required")
        try:
            payload = NewUser.model_validate(_present(username=username))
        except ValidationError as exc:
            logger.warning("user record rejected: %s", exc.errors()[0]["msg"])
            raise LogRequestError("Error saving user to the database") from exc

        try:
            existing = await self._repository.find_user_by_username(payload.username)
        except RepositoryError as exc:
            logger.exception("user lookup failed for %r", payload.username)
            raise LogRequestError("Error finding user in the database") from exc
        if existing is not None:
            raise LogRequestError("username already exists")

        try:
            user = await self._repository.create_user(payload.username)
        except RepositoryError as exc:
            logger.exception("saving user %r failed", payload.username)
            raise LogRequestError("Error saving user to the database") from exc
        # lost a concurrent registration race on the unique constraint
        if user is None:
            raise LogRequestError("username already exists")

        logger.info("registered user %s (%s)", user.user_id, user.username)
        return user

    async def list_users(self) -> list[ExerciseUser]:
        """Return all registered users in storage order."""
        try:
            return await self._repository.list_users()
        except RepositoryError as exc:
            logger.exception("listing users failed")
            raise LogRequestError("Error fetching users from the database") from exc

    async def add_exercise(
        self,
        user_id: str,
        *,
        description: Any,
        duration: Any,
        date: Any = None,
    ) -> UserHistory:
        """Log an exercise and return the user's full history including it.

        Parameters
        ----------
        user_id:
            Path identifier of the user; ``"0"`` and malformed ids are rejected.
        description:
            Free-form label; an empty string is rejected.
        duration:
            Minutes as sent by the client; only the leading integer is read.
        date:
            Optional calendar date. Omitted means now; anything supplied must parse.
        """
        if not is_valid_id(user_id):
            raise LogRequestError("_id is invalid")
        if description == "":
            raise LogRequestError("description is required")
        if duration == "":
            raise LogRequestError("duration is required")

        minutes = parse_int(duration)
        if minutes is None:
            raise LogRequestError("duration is not a number")

        if date is None:
            performed_at = datetime.now(timezone.utc)
        else:
            performed_at = parse_date(date)
            if performed_at is None:
                raise LogRequestError("date is invalid")

        try:
            user = await self._repository.get_user(user_id)
        except RepositoryError as exc:
            logger.exception("user fetch failed for %s", user_id)
            raise LogRequestError("Error saving exercise to the database") from exc
        if user is None:
            raise LogRequestError("user not found")

        try:
            record = ExerciseRecord.model_validate(
                _present(
                    user_id=user.user_id,
                    description=description,
                    duration=minutes,
                    performed_at=performed_at,
                )
            )
        except ValidationError as exc:
            logger.warning("exercise record for %s rejected: %s", user.user_id, exc.errors()[0]["msg"])
            raise LogRequestError("Error saving exercise to the database") from exc

        try:
            await self._repository.create_exercise(record)
            history = await self._repository.list_exercises(ExerciseQuery(user_id=user.user_id))
        except RepositoryError as exc:
            logger.exception("saving exercise for %s failed", user.user_id)
            raise LogRequestError("Error saving exercise to the database") from exc
        return UserHistory(user=user, exercises=history)

    async def query_exercises(
        self,
        user_id: str,
        *,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: str | None = None,
    ) -> UserHistory:
        """Strict, date-sorted view of a user's exercises.

        Supplied ``date_from``/``date_to`` values must parse and ``limit`` must
        be numeric; empty date strings count as absent.
        """
        query = ExerciseQuery(user_id=user_id, sort_by_date=True)

        if date_from is not None and date_from != "":
            parsed = parse_date(date_from)
            if parsed is None:
                raise LogRequestError("from date is invalid")
            query.date_from = DateBound(parsed)

        if date_to is not None and date_to != "":
            parsed = parse_date(date_to)
            if parsed is None:
                raise LogRequestError("to date is invalid")
            query.date_to = DateBound(parsed)

        if limit is not None:
            cap = parse_int(limit)
            if cap is None:
                raise LogRequestError("limit is not a number")
            query.limit = abs(cap)

        if not is_valid_id(user_id):
            raise LogRequestError("_id is invalid")

        return await self._fetch_history(query)

    async def exercise_log(
        self,
        user_id: str,
        *,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: str | None = None,
    ) -> UserHistory:
        """Lenient log view in storage order.

        Unparseable dates stay in the filter as bounds nothing can satisfy, and
        a non-numeric or non-positive ``limit`` means no limit. Ids are not
        format-checked up front; one the store cannot interpret fails the lookup.
        """
        query = ExerciseQuery(user_id=user_id)
        if date_from:
            query.date_from = DateBound(parse_date(date_from))
        if date_to:
            query.date_to = DateBound(parse_date(date_to))

        cap = parse_int(limit)
        query.limit = cap if cap is not None and cap > 0 else 0

        if not is_valid_id(user_id):
            logger.warning("log lookup for unreadable id %r", user_id)
            raise LogRequestError("Error fetching user or exercises from the database")

        return await self._fetch_history(query)

    async def _fetch_history(self, query: ExerciseQuery) -> UserHistory:
        try:
            user = await self._repository.get_user(query.user_id)
            if user is None:
                raise LogRequestError("user not found")
            exercises = await self._repository.list_exercises(query)
        except RepositoryError as exc:
            logger.exception("fetching exercises for %s failed", query.user_id)
            raise LogRequestError("Error fetching user or exercises from the database") from exc
        return UserHistory(user=user, exercises=exercises)
