from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import FileResponse, JSONResponse

from endpoints.task_models import (
    COMPLETED_TABLE,
    TASKS_TABLE,
    current_timestamp,
    is_true_flag,
    new_task,
    parse_task_input,
)
from export_csv import EXPORT_FILENAME, write_tasks_csv
from persistence.record_store import RecordConflictError
from persistence.repositories import AsyncRecordRepository
from settings import Settings

router = APIRouter(tags=["tasks"])
logger = logging.getLogger(__name__)

MSG_MISSING_ID = "Id not provided."
MSG_MISSING_FIELDS = "Title or description not provided."
MSG_NOT_FOUND = "Record not found."
MSG_ALREADY_COMPLETED = "Task is already completed."
MSG_NOTHING_TO_EXPORT = "No tasks found to export."
MSG_EXPORT_FAILED = "Failed to export tasks to CSV."


# -------------------------------------------------------------------
# Dependencies (the store lives on app.state, created once in create_app)
# -------------------------------------------------------------------
def get_repository(request: Request) -> AsyncRecordRepository:
    return request.app.state.repository


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
async def _read_json_body(request: Request) -> dict[str, Any]:
    # Missing or malformed bodies are validated as empty so they get a 400, not a 422.
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _require_id(id: str) -> str:
    task_id = id.strip()
    if not task_id:
        raise HTTPException(status_code=400, detail=MSG_MISSING_ID)
    return task_id


def _table_for(is_completed: str | None) -> str:
    return COMPLETED_TABLE if is_true_flag(is_completed) else TASKS_TABLE


# -------------------------------------------------------------------
# Routes (export must be registered before /tasks/{id})
# -------------------------------------------------------------------
@router.get("/tasks/export")
async def export_tasks(
    repo: AsyncRecordRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    tasks = await repo.select(TASKS_TABLE)
    if not tasks:
        raise HTTPException(status_code=404, detail=MSG_NOTHING_TO_EXPORT)

    csv_path = settings.export_dir / EXPORT_FILENAME
    try:
        await asyncio.to_thread(write_tasks_csv, tasks, csv_path)
    except OSError as e:
        logger.error("TASK EXPORT: failed to write %s: %r", csv_path, e)
        raise HTTPException(status_code=500, detail=MSG_EXPORT_FAILED) from e

    logger.info("TASK EXPORT: wrote %s tasks to %s", len(tasks), csv_path)
    return FileResponse(
        csv_path,
        media_type="text/csv; charset=utf-8",
        filename=EXPORT_FILENAME,
    )


@router.get("/tasks")
async def list_tasks(
    is_completed: str | None = Query(None, alias="isCompleted"),
    title: str | None = None,
    description: str | None = None,
    repo: AsyncRecordRepository = Depends(get_repository),
):
    search = {k: v for k, v in (("title", title), ("description", description)) if v}
    return await repo.select(_table_for(is_completed), search or None)


@router.get("/tasks/{id}")
async def get_task(
    id: str,
    is_completed: str | None = Query(None, alias="isCompleted"),
    repo: AsyncRecordRepository = Depends(get_repository),
):
    task_id = _require_id(id)
    task = await repo.get(_table_for(is_completed), task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=MSG_NOT_FOUND)
    return [task]


@router.post("/tasks", status_code=201)
async def create_task(request: Request, repo: AsyncRecordRepository = Depends(get_repository)):
    data = parse_task_input(await _read_json_body(request))
    if data is None:
        raise HTTPException(status_code=400, detail=MSG_MISSING_FIELDS)

    task = await repo.insert(TASKS_TABLE, new_task(data))
    logger.info("TASK CREATE: id=%s", task["id"])
    return JSONResponse(task, status_code=201)


@router.put("/tasks/{id}", status_code=204)
async def update_task(id: str, request: Request, repo: AsyncRecordRepository = Depends(get_repository)):
    task_id = _require_id(id)
    data = parse_task_input(await _read_json_body(request))
    if data is None:
        raise HTTPException(status_code=400, detail=MSG_MISSING_FIELDS)

    existing = await repo.get(TASKS_TABLE, task_id)
    if existing is None:
        raise HTTPException(status_code=404, detail=MSG_NOT_FOUND)

    updated = {
        **existing,
        "title": data.title,
        "description": data.description,
        "updated_at": current_timestamp(),
    }
    if not await repo.update(TASKS_TABLE, task_id, updated):
        # deleted or completed since the read above
        raise HTTPException(status_code=404, detail=MSG_NOT_FOUND)
    return Response(status_code=204)


@router.delete("/tasks/{id}", status_code=204)
async def delete_task(
    id: str,
    is_completed: str | None = Query(None, alias="isCompleted"),
    repo: AsyncRecordRepository = Depends(get_repository),
):
    task_id = _require_id(id)
    table = _table_for(is_completed)
    if not await repo.delete(table, task_id):
        raise HTTPException(status_code=404, detail=MSG_NOT_FOUND)
    logger.info("TASK DELETE: id=%s table=%s", task_id, table)
    return Response(status_code=204)


@router.patch("/tasks/{id}/complete")
async def complete_task(id: str, repo: AsyncRecordRepository = Depends(get_repository)):
    task_id = _require_id(id)

    # Completed tasks leave the tasks table; the store reports a repeat as a conflict.
    try:
        task = await repo.move(TASKS_TABLE, COMPLETED_TABLE, task_id, {"completed_at": current_timestamp()})
    except RecordConflictError as e:
        raise HTTPException(status_code=409, detail=MSG_ALREADY_COMPLETED) from e
    if task is None:
        raise HTTPException(status_code=404, detail=MSG_NOT_FOUND)
    logger.info("TASK COMPLETE: id=%s", task_id)
    return task
