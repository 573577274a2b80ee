"""Progress reporting for evaluation runs: rich progress bar."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from agentassay.engine import EvalProgress


class ProgressReporter:
    """Render ``EvalProgress`` updates from the engine as a progress bar.

    Pass ``reporter.update`` as the engine's ``on_progress`` callback.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console
        self._progress: Optional[Progress] = None
        self._task_id = None
        self.last: Optional[EvalProgress] = None

    def start(self, description: str = "Evaluating") -> None:
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[red]{task.fields[failed]} failed"),
            TimeElapsedColumn(),
            console=self._console,
        )
        self._task_id = self._progress.add_task(description, total=None, failed=0)
        self._progress.start()

    def update(self, progress: EvalProgress) -> None:
        self.last = progress
        if self._progress is None:
            return
        self._progress.update(
            self._task_id,
            total=progress.total,
            completed=progress.completed + progress.failed,
            failed=progress.failed,
        )

    def finish(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
