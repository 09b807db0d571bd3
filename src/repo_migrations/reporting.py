from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Protocol, runtime_checkable

log = logging.getLogger(__name__)

@runtime_checkable
class ErrorReporter(Protocol):
    """Where failures that are not raised (or about to be swallowed) get sent."""

    def report(self, error: BaseException) -> None:
        ...


class LoggingErrorReporter:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or log

    def report(self, error: BaseException) -> None:
        self.logger.error("%s: %s", type(error).__name__, error, exc_info=error)


class NullErrorReporter:
    def report(self, error: BaseException) -> None:
        pass


@dataclass
class RecordingErrorReporter:
    errors: List[BaseException] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def report(self, error: BaseException) -> None:
        with self._lock:
            self.errors.append(error)
