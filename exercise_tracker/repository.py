"""Database repository for exercise users and their exercise log."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import psycopg
from psycopg.rows import tuple_row
from psycopg_pool import AsyncConnectionPool

from .domain.contracts import ExerciseQuery, ExerciseRecord
from .domain.exercise import Exercise
from .domain.user import ExerciseUser

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS exercise_users (
        user_id UUID PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        seq BIGSERIAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS exercises (
        exercise_id UUID PRIMARY KEY,
        user_id UUID NOT NULL,
        description TEXT NOT NULL,
        duration INTEGER NOT NULL CHECK (duration >= 1),
        performed_at TIMESTAMPTZ NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        seq BIGSERIAL
    )
    """,
    "CREATE INDEX IF NOT EXISTS exercises_user_seq_idx ON exercises (user_id, seq)",
)


class RepositoryError(RuntimeError):
    """Raised when the backing store fails to complete an operation."""


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError):
        return None


@asynccontextmanager
async def _translate_errors(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except psycopg.Error as exc:
        raise RepositoryError(f"{operation} failed: {exc}") from exc


class ExerciseRepository:
    """Postgres-backed store for the users and exercises collections."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    async def ensure_schema(self) -> None:
        """Create the collections and indexes when they do not exist yet."""
        async with _translate_errors("schema setup"):
            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    for statement in SCHEMA_STATEMENTS:
                        await cur.execute(statement)
                await conn.commit()

    async def find_user_by_username(self, username: str) -> ExerciseUser | None:
        """Return the user registered under exactly ``username``."""
        async with _translate_errors("user lookup"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        """
                        SELECT user_id, username, created_at
                        FROM exercise_users
                        WHERE username = %s
                        """,
                        (username,),
                    )
                    row = await cur.fetchone()
        return self._map_user(row) if row else None

    async def get_user(self, user_id: str) -> ExerciseUser | None:
        """Fetch a user by id; ids that are not UUIDs never match."""
        key = _as_uuid(user_id)
        if key is None:
            return None
        async with _translate_errors("user fetch"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        """
                        SELECT user_id, username, created_at
                        FROM exercise_users
                        WHERE user_id = %s
                        """,
                        (key,),
                    )
                    row = await cur.fetchone()
        return self._map_user(row) if row else None

    async def create_user(self, username: str) -> ExerciseUser | None:
        """Insert a user, returning ``None`` when the username is already taken."""
        async with _translate_errors("user insert"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        """
                        INSERT INTO exercise_users (user_id, username, created_at)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (username) DO NOTHING
                        RETURNING user_id, username, created_at
                        """,
                        (uuid.uuid4(), username, datetime.now(timezone.utc)),
                    )
                    row = await cur.fetchone()
                await conn.commit()
        return self._map_user(row) if row else None

    async def list_users(self) -> list[ExerciseUser]:
        """Return every registered user in insertion order."""
        async with _translate_errors("user listing"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        "SELECT user_id, username, created_at FROM exercise_users ORDER BY seq"
                    )
                    rows = await cur.fetchall()
        return [self._map_user(row) for row in rows]

    async def create_exercise(self, record: ExerciseRecord) -> Exercise:
        """Persist a validated exercise record."""
        async with _translate_errors("exercise insert"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        """
                        INSERT INTO exercises (exercise_id, user_id, description, duration, performed_at)
                        VALUES (%s, %s, %s, %s, %s)
                        RETURNING exercise_id, user_id, description, duration, performed_at
                        """,
                        (
                            uuid.uuid4(),
                            uuid.UUID(record.user_id),
                            record.description,
                            record.duration,
                            record.performed_at,
                        ),
                    )
                    row = await cur.fetchone()
                await conn.commit()
        return self._map_exercise(row)

    async def list_exercises(self, query: ExerciseQuery) -> list[Exercise]:
        """Return the user's exercises matching ``query``.

        Rows come back in insertion order unless ``query.sort_by_date`` is
        set. A ``limit`` of zero means no limit.
        """
        key = _as_uuid(query.user_id)
        if key is None:
            return []

        clauses = ["user_id = %s"]
        params: list[Any] = [key]
        # An unparseable bound is bound as NULL; the comparison is then unknown for every row.
        if query.date_from is not None:
            clauses.append("performed_at >= %s::timestamptz")
            params.append(query.date_from.value)
        if query.date_to is not None:
            clauses.append("performed_at <= %s::timestamptz")
            params.append(query.date_to.value)

        order_sql = "performed_at ASC, seq ASC" if query.sort_by_date else "seq ASC"
        sql = f"""
            SELECT exercise_id, user_id, description, duration, performed_at
            FROM exercises
            WHERE {" AND ".join(clauses)}
            ORDER BY {order_sql}
        """
        if query.limit > 0:
            sql += " LIMIT %s"
            params.append(query.limit)

        async with _translate_errors("exercise listing"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(sql, params)
                    rows = await cur.fetchall()
        return [self._map_exercise(row) for row in rows]

    def _map_user(self, row: tuple) -> ExerciseUser:
        return ExerciseUser(user_id=str(row[0]), username=row[1], created_at=row[2])

    def _map_exercise(self, row: tuple) -> Exercise:
        return Exercise(
            exercise_id=str(row[0]),
            user_id=str(row[1]),
            description=row[2],
            duration=row[3],
            performed_at=row[4],
        )
