from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

TASKS_TABLE = "tasks"
COMPLETED_TABLE = "completed"


class TaskInput(BaseModel):
    """Body of POST /tasks and PUT /tasks/{id}. Extra keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    title: str
    description: str

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as e:
            # lone surrogates can't be written to the document or a response
            raise ValueError("must be valid unicode text") from e
        return value


class TaskRecord(BaseModel):
    """
    Mirrors a stored task:
      { "id", "title", "description", "created_at", "updated_at" }
    Completed tasks additionally carry "completed_at".
    """

    model_config = ConfigDict(extra="allow")

    id: str
    title: str
    description: str
    created_at: str
    updated_at: str | None = None


def parse_task_input(body: Mapping[str, Any]) -> TaskInput | None:
    try:
        return TaskInput.model_validate(dict(body))
    except ValidationError:
        return None


def current_timestamp(now: datetime | None = None) -> str:
    # Local wall-clock time, second precision.
    return (now or datetime.now()).isoformat(timespec="seconds")


def new_task(data: TaskInput, *, now: datetime | None = None) -> dict[str, Any]:
    record = TaskRecord(
        id=str(uuid.uuid4()),
        title=data.title,
        description=data.description,
        created_at=current_timestamp(now),
        updated_at=None,
    )
    return record.model_dump(mode="json")


def is_true_flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() == "true"
