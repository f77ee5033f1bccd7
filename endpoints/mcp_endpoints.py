from __future__ import annotations

import logging
from typing import Any, Literal

from typing_extensions import TypedDict
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from endpoints.task_models import (
    COMPLETED_TABLE,
    TASKS_TABLE,
    TaskInput,
    current_timestamp,
    new_task,
    parse_task_input,
)
from persistence.record_store import PersistenceError, RecordConflictError
from persistence.repositories import AsyncRecordRepository

logger = logging.getLogger(__name__)


class ToolTextContent(TypedDict):
    type: Literal["text"]
    text: str


class TaskToolResponse(TypedDict, total=False):
    content: list[ToolTextContent]
    structuredContent: dict[str, Any]


def _reply(message: str | None = None, *, tasks: list[dict[str, Any]] | None = None) -> TaskToolResponse:
    return {
        "content": ([{"type": "text", "text": message}] if message else []),
        "structuredContent": {"tasks": tasks if tasks is not None else []},
    }


class TaskTools:
    """
    MCP tools over the same repository the HTTP routes use.
    Bad input, missing tasks and write failures are reported as text replies.
    """

    def __init__(self, repo: AsyncRecordRepository) -> None:
        self._repo = repo

    async def list_tasks(self, is_completed: bool = False, search: str | None = None) -> TaskToolResponse:
        """
        Lists active tasks (or completed ones), optionally filtered by a
        case-insensitive substring of the title or description.
        """
        table = COMPLETED_TABLE if is_completed else TASKS_TABLE
        needle = search.strip() if isinstance(search, str) else ""
        criteria = {"title": needle, "description": needle} if needle else None
        tasks = await self._repo.select(table, criteria)
        label = "Completed tasks" if is_completed else "Tasks"
        return _reply(f"{label}: {len(tasks)}", tasks=tasks)

    async def create_task(self, title: str, description: str) -> TaskToolResponse:
        """
        Creates a task with a title and a description.
        """
        data: TaskInput | None = parse_task_input({"title": title, "description": description})
        if data is None:
            return _reply("Invalid input: `title` and `description` must be non-empty strings.")
        try:
            task = await self._repo.insert(TASKS_TABLE, new_task(data))
        except PersistenceError as e:
            logger.error("MCP CREATE: %r", e)
            return _reply("Could not save the task.")
        return _reply(f'Created task "{task["title"]}" ({task["id"]}).', tasks=[task])

    async def complete_task(self, id: str) -> TaskToolResponse:
        """
        Marks a task as completed, moving it to the completed list.
        """
        if not isinstance(id, str) or not id.strip():
            return _reply("Missing task id.")
        task_id = id.strip()
        try:
            task = await self._repo.move(
                TASKS_TABLE, COMPLETED_TABLE, task_id, {"completed_at": current_timestamp()}
            )
        except RecordConflictError:
            return _reply(f"Task {task_id} is already completed.")
        except PersistenceError as e:
            logger.error("MCP COMPLETE: %r", e)
            return _reply("Could not save the task.")
        if task is None:
            return _reply(f"Task {task_id} was not found.")
        return _reply(f'Completed task "{task.get("title")}" ({task_id}).', tasks=[task])

    async def delete_task(self, id: str, is_completed: bool = False) -> TaskToolResponse:
        """
        Deletes a task by id (from the completed list when is_completed is true).
        """
        if not isinstance(id, str) or not id.strip():
            return _reply("Missing task id.")
        task_id = id.strip()
        table = COMPLETED_TABLE if is_completed else TASKS_TABLE
        try:
            deleted = await self._repo.delete(table, task_id)
        except PersistenceError as e:
            logger.error("MCP DELETE: %r", e)
            return _reply("Could not save the change.")
        if not deleted:
            return _reply(f"Task {task_id} was not found.")
        return _reply(f"Deleted task {task_id}.")


def build_mcp(repo: AsyncRecordRepository) -> FastMCP:
    mcp = FastMCP(
        "Tasks MCP",
        stateless_http=True,
        json_response=True,
        # FastMCP auto-enables DNS rebinding protection on localhost, which rejects
        # tunnelled Host headers with 421.
        transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
    )
    tools = TaskTools(repo)
    for fn in (tools.list_tasks, tools.create_task, tools.complete_task, tools.delete_task):
        mcp.tool()(fn)
    return mcp
