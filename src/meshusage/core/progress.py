"""Per-pass progress reporting."""

import logging
import threading
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text


class ProgressReporter:
    """Receives per-entity completion events. The base class ignores them."""

    def start(self, title: str, total: int) -> None:
        pass

    def advance(self, count: int = 1) -> None:
        pass

    def complete(self) -> None:
        pass


class NullProgressReporter(ProgressReporter):
    """Used when progress display is disabled."""


class CountingProgressReporter(ProgressReporter):
    """Records events without rendering anything."""

    def __init__(self):
        self.title: Optional[str] = None
        self.total = 0
        self.completed = 0
        self.finished = False

    def start(self, title: str, total: int) -> None:
        self.title = title
        self.total = total
        self.completed = 0
        self.finished = False

    def advance(self, count: int = 1) -> None:
        self.completed += count

    def complete(self) -> None:
        self.finished = True


class ConsoleLogHandler(RichHandler):
    """Prints already rendered structlog lines through a rich console."""

    def __init__(self, console: Console):
        super().__init__(console=console, show_time=False, show_level=False, show_path=False)

    def render_message(self, record: logging.LogRecord, message: str) -> Text:
        return Text.from_ansi(message)


class RichProgressReporter(ProgressReporter):
    """Renders one rich progress bar per pass; log lines scroll above it."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._lock = threading.Lock()
        self._saved_handlers: Optional[List[logging.Handler]] = None

    def start(self, title: str, total: int) -> None:
        with self._lock:
            self._progress = Progress(
                TextColumn("[cyan]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self.console,
                transient=False,
            )
            self._task = self._progress.add_task(title, total=total)
            self._route_logging()
            self._progress.start()

    def advance(self, count: int = 1) -> None:
        with self._lock:
            if self._progress is not None and self._task is not None:
                self._progress.advance(self._task, count)

    def complete(self) -> None:
        with self._lock:
            if self._progress is None:
                return
            self._progress.stop()
            self._progress = None
            self._task = None
            self._restore_logging()

    def _route_logging(self) -> None:
        # root handlers hold the original stderr and would print through the bar
        root = logging.getLogger()
        if self._saved_handlers is None:
            self._saved_handlers = root.handlers[:]
        root.handlers = [ConsoleLogHandler(self.console)]

    def _restore_logging(self) -> None:
        if self._saved_handlers is None:
            return
        logging.getLogger().handlers = self._saved_handlers
        self._saved_handlers = None
