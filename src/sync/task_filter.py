from typing import Iterable, List

from momentum.models import Task


def is_eligible(task: Task) -> bool:
    return bool(task.start_time) and bool(task.end_time) and not task.completed


def eligible(tasks: Iterable[Task]) -> List[Task]:
    """Open tasks with both a start and an end time, in their original order."""
    return [t for t in tasks if is_eligible(t)]
