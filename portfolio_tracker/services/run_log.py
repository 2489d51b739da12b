# portfolio_tracker/services/run_log.py
from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Iterable, List

from portfolio_tracker.models import LogLine

logger = logging.getLogger("portfolio_tracker.run")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

LogListener = Callable[[LogLine], None]


class RunLog:
    """
    Ordered log lines for one account run.

    Every line also goes to the process log (console + server.log) and to
    each registered listener, whether or not anyone is listening.
    """

    def __init__(self, clock: Callable[[], dt.datetime], listeners: Iterable[LogListener] = ()):
        self.clock = clock
        self.entries: List[LogLine] = []
        self._listeners: List[LogListener] = list(listeners)

    def on_log_line(self, callback: LogListener) -> None:
        self._listeners.append(callback)

    def log(self, message: str, level: int = logging.INFO) -> LogLine:
        line = LogLine(timestamp=self.clock().strftime(TIMESTAMP_FORMAT), message=message)
        self.entries.append(line)
        logger.log(level, message)
        for callback in self._listeners:
            try:
                callback(line)
            except Exception:
                logger.exception("Log listener failed")
        return line

    def warning(self, message: str) -> LogLine:
        return self.log(message, logging.WARNING)

    def error(self, message: str) -> LogLine:
        return self.log(message, logging.ERROR)
