"""Progress tracking context for copy runs."""

from typing import Optional

from rich.progress import Progress, TaskID


class ProgressContext:
    """Wraps an optional rich progress task so callers need not check for one."""

    def __init__(self, progress: Optional[Progress] = None, task: Optional[TaskID] = None):
        self.progress = progress
        self.task = task

    @property
    def is_active(self) -> bool:
        return self.progress is not None and self.task is not None

    def describe(self, description: str) -> None:
        """Show what is being worked on next to the bar."""
        if self.is_active:
            self.progress.update(self.task, description=description)

    def advance(self, steps: int = 1) -> None:
        if self.is_active:
            self.progress.advance(self.task, steps)

    def set_total(self, total: int) -> None:
        if self.is_active:
            self.progress.update(self.task, total=total)
