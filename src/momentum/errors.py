from typing import Optional


class MomentumError(Exception):
    """Base class for calendar sync failures."""


class Unauthorized(MomentumError):
    """Inbound caller has no valid credential."""


class NoCredential(MomentumError):
    """User never connected Google Calendar."""

    def __init__(self, uid: str):
        super().__init__(f"User {uid} has not connected Google Calendar.")
        self.uid = uid


class NoTasks(MomentumError):
    """User has no task document; nothing to do."""

    def __init__(self, uid: str):
        super().__init__(f"User {uid} has no tasks to sync.")
        self.uid = uid


class MalformedTask(MomentumError):
    """A task's date or time fields could not be parsed."""

    def __init__(self, task_id: str, reason: str):
        super().__init__(f"Task {task_id} is malformed: {reason}")
        self.task_id = task_id
        self.reason = reason


class MalformedRecord(MomentumError):
    """A stored document does not match its expected schema."""


class ProviderConflict(MomentumError):
    """Calendar already holds an event with this id."""

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} already exists")
        self.event_id = event_id


class ProviderError(MomentumError):
    """Any other calendar provider failure."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
