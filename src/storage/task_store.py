import logging
from typing import Any, Optional

from pydantic import ValidationError

from momentum.errors import MalformedRecord
from momentum.models import RejectedTask, Task, TaskList
from storage.db import Database

logger = logging.getLogger(__name__)

TASKS_DOC = "tasks"


def _raw_id(item: Any, index: int) -> str:
    if isinstance(item, dict) and item.get("id") not in (None, ""):
        return str(item["id"])
    return f"#{index}"


def _reason(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'task'}: {err['msg']}"
        for err in e.errors()
    )


class TaskStore:
    """Read access to the task list document the frontend maintains per user."""

    def __init__(self, database: Database):
        self.db = database

    async def get_task_list(self, user_id: str) -> Optional[TaskList]:
        """
        Load a user's tasks in stored order.

        Returns None when the user has no task document at all, and an empty
        TaskList when the document exists without a list. Entries that do not
        validate are returned as rejected, the rest still load.
        """
        data = await self.db.fetchval(
            "SELECT data FROM user_data WHERE user_id = $1 AND doc_name = $2",
            user_id,
            TASKS_DOC,
        )
        if data is None:
            return None
        if not isinstance(data, dict):
            raise MalformedRecord(f"Task document of user {user_id} is not an object")

        raw = data.get("list")
        if raw is None:
            return TaskList()
        if not isinstance(raw, list):
            raise MalformedRecord(f"Task list of user {user_id} is not a list")

        task_list = TaskList()
        for index, item in enumerate(raw):
            try:
                task_list.tasks.append(Task.model_validate(item))
            except ValidationError as e:
                rejected = RejectedTask(task_id=_raw_id(item, index), reason=_reason(e))
                logger.warning(
                    f"Invalid task {rejected.task_id} for user {user_id}: {rejected.reason}"
                )
                task_list.rejected.append(rejected)
        return task_list
