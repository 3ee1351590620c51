from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Task(BaseModel):
    """One entry of a user's task list, as written by the Momentum frontend.

    Date and time fields stay raw strings: a bad value must only fail the
    event mapping for this task, not the whole list at load time.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    text: str = ""
    due_date: Optional[str] = Field(None, alias="dueDate")
    start_time: Optional[str] = Field(None, alias="startTime")
    end_time: Optional[str] = Field(None, alias="endTime")
    category: Optional[str] = None
    completed: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v: Any) -> Any:
        # frontend ids are sometimes Date.now() numbers
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v)) if float(v).is_integer() else str(v)
        return v

    @field_validator("text", mode="before")
    @classmethod
    def text_not_null(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("completed", mode="before")
    @classmethod
    def completed_not_null(cls, v: Any) -> Any:
        return False if v is None else v


class RejectedTask(BaseModel):
    """A stored task entry that failed validation; only its raw id survives."""

    task_id: str
    reason: str


class TaskList(BaseModel):
    tasks: List[Task] = Field(default_factory=list)
    rejected: List[RejectedTask] = Field(default_factory=list)


class Credential(BaseModel):
    """Delegated Google Calendar access for one user (plaintext, in memory only)."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None


class ConnectedSettingsRef(BaseModel):
    """A settings document returned by the discovery query."""

    user_id: str
    doc_name: str


class TaskSyncError(BaseModel):
    task_id: str
    kind: Literal["malformed_task", "provider_error"]
    message: str


class SyncResult(BaseModel):
    uid: str
    created: int = 0
    already_synced: int = 0
    errors: List[TaskSyncError] = Field(default_factory=list)

    @property
    def summary(self) -> str:
        return f"Sync complete for {self.uid}. {self.created} new events created."


class TriggerSummary(BaseModel):
    user_ids: List[str] = Field(default_factory=list)

    @property
    def triggered(self) -> int:
        return len(self.user_ids)

    @property
    def summary(self) -> str:
        if not self.user_ids:
            return "No users to sync."
        return f"Sync triggered for {self.triggered} users."
