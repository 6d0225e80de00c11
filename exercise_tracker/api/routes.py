"""HTTP route definitions for the exercise tracker."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, Field

from ..domain.exercise import Exercise, UserHistory
from ..domain.parsing import format_date_string
from ..domain.service import ExerciseLogService, LogRequestError
from ..domain.user import ExerciseUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SOFT_ERRORS = Counter(
    "exercise_tracker_soft_errors_total",
    "Requests answered with an error payload instead of a result.",
    ["endpoint"],
)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class ErrorResponse(BaseModel):
    """Application-level failure returned with a 200 status."""

    error: str


class UserResponse(BaseModel):
    """Serialised representation of an `ExerciseUser`."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="_id")
    username: str

    @classmethod
    def from_domain(cls, user: ExerciseUser) -> "UserResponse":
        return cls(user_id=user.user_id, username=user.username)


class ExerciseEntry(BaseModel):
    """Exercise as it appears inside a history or log."""

    description: str
    duration: int
    date: str

    @classmethod
    def from_domain(cls, exercise: Exercise) -> "ExerciseEntry":
        return cls(
            description=exercise.description,
            duration=exercise.duration,
            date=format_date_string(exercise.performed_at),
        )


class ExerciseHistoryResponse(BaseModel):
    """User echoed back with every exercise logged so far."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="_id")
    username: str
    exercises: list[ExerciseEntry]


class ExerciseQueryResponse(BaseModel):
    """Date-sorted exercise listing."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="_id")
    username: str
    log: list[ExerciseEntry]
    count: int


class ExerciseLogResponse(BaseModel):
    """Log view in storage order."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="_id")
    username: str
    count: int
    log: list[ExerciseEntry]


def get_service(request: Request) -> ExerciseLogService:
    """Resolve the `ExerciseLogService` stored on the FastAPI application state."""
    service: ExerciseLogService = request.app.state.exercise_service
    return service


async def read_body(request: Request) -> dict[str, Any]:
    """Return the request body fields from a form or JSON payload."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        return dict(form)
    if "json" in content_type:
        try:
            payload = await request.json()
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid JSON body") from exc
        return payload if isinstance(payload, dict) else {}
    return {}


def _soft_error(endpoint: str, exc: LogRequestError) -> ErrorResponse:
    SOFT_ERRORS.labels(endpoint=endpoint).inc()
    logger.debug("%s rejected: %s", endpoint, exc)
    return ErrorResponse(error=str(exc))


def _entries(history: UserHistory) -> list[ExerciseEntry]:
    return [ExerciseEntry.from_domain(exercise) for exercise in history.exercises]


@router.post("/users", response_model=UserResponse | ErrorResponse)
async def create_user(
    body: dict[str, Any] = Depends(read_body),
    service: ExerciseLogService = Depends(get_service),
) -> UserResponse | ErrorResponse:
    """Register a new username."""
    try:
        user = await service.register_user(body.get("username"))
    except LogRequestError as exc:
        return _soft_error("create_user", exc)
    return UserResponse.from_domain(user)


@router.get("/users", response_model=list[UserResponse] | ErrorResponse)
async def list_users(
    service: ExerciseLogService = Depends(get_service),
) -> list[UserResponse] | ErrorResponse:
    """List every registered user."""
    try:
        users = await service.list_users()
    except LogRequestError as exc:
        return _soft_error("list_users", exc)
    return [UserResponse.from_domain(user) for user in users]


@router.post("/users/{user_id}/exercises", response_model=ExerciseHistoryResponse | ErrorResponse)
async def add_exercise(
    user_id: str,
    body: dict[str, Any] = Depends(read_body),
    service: ExerciseLogService = Depends(get_service),
) -> ExerciseHistoryResponse | ErrorResponse:
    """Log an exercise and echo the user's accumulated history."""
    try:
        history = await service.add_exercise(
            user_id,
            description=body.get("description"),
            duration=body.get("duration"),
            date=body.get("date"),
        )
    except LogRequestError as exc:
        return _soft_error("add_exercise", exc)
    return ExerciseHistoryResponse(
        user_id=history.user.user_id,
        username=history.user.username,
        exercises=_entries(history),
    )


@router.get("/users/{user_id}/exercises", response_model=ExerciseQueryResponse | ErrorResponse)
async def query_exercises(
    user_id: str,
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    limit: str | None = Query(default=None),
    service: ExerciseLogService = Depends(get_service),
) -> ExerciseQueryResponse | ErrorResponse:
    """Return the user's exercises sorted by date, validating every filter."""
    try:
        history = await service.query_exercises(
            user_id, date_from=date_from, date_to=date_to, limit=limit
        )
    except LogRequestError as exc:
        return _soft_error("query_exercises", exc)
    log = _entries(history)
    return ExerciseQueryResponse(
        user_id=history.user.user_id,
        username=history.user.username,
        log=log,
        count=len(log),
    )


@router.get("/users/{user_id}/logs", response_model=ExerciseLogResponse | ErrorResponse)
async def exercise_log(
    user_id: str,
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    limit: str | None = Query(default=None),
    service: ExerciseLogService = Depends(get_service),
) -> ExerciseLogResponse | ErrorResponse:
    """Return the user's exercise log in storage order with lenient filters."""
    try:
        history = await service.exercise_log(
            user_id, date_from=date_from, date_to=date_to, limit=limit
        )
    except LogRequestError as exc:
        return _soft_error("exercise_log", exc)
    log = _entries(history)
    return ExerciseLogResponse(
        user_id=history.user.user_id,
        username=history.user.username,
        count=len(log),
        log=log,
    )
