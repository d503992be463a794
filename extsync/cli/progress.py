"""Rich-based progress reporting for sync runs."""

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TaskID, TextColumn


class RichProgressReporter:
    """Shows sync progress as a transient spinner and progress bar."""

    def __init__(self, console: Console):
        self._console = console
        self._progress: Progress | None = None
        self._task: TaskID | None = None

    def show_step(self, message: str, current: int, total: int) -> None:
        if self._progress is None or self._task is None:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                console=self._console,
                transient=True,
            )
            self._progress.start()
            self._task = self._progress.add_task(message, total=total)
        self._progress.update(self._task, description=message, completed=current, total=total)

    def clear(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None
