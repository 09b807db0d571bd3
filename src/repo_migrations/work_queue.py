from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Generic, Optional, TypeVar

from .reporting import ErrorReporter, LoggingErrorReporter

log = logging.getLogger(__name__)

T = TypeVar("T")

_STOP = object()

class SerialQueue(Generic[T]):
    """
    Single-consumer FIFO. Items are handled one at a time, in the order they
    were put. A handler failure is reported and the next item proceeds.
    """

    def __init__(
        self,
        handle_item: Callable[[T], None],
        reporter: Optional[ErrorReporter] = None,
        name: str = "serial-queue",
    ) -> None:
        self._handle_item = handle_item
        self._reporter = reporter or LoggingErrorReporter()
        self._items: "queue.Queue[object]" = queue.Queue()
        self._closed = False
        self._worker = threading.Thread(target=self._run, name=name, daemon=True)
        self._worker.start()

    def put(self, item: T) -> None:
        if self._closed:
            raise RuntimeError("queue is closed")
        self._items.put(item)

    def join(self) -> None:
        """Blocks until every item put so far has been handled."""
        self._items.join()

    def close(self, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        self._items.put(_STOP)
        if wait:
            self._worker.join()

    def __enter__(self) -> "SerialQueue[T]":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _run(self) -> None:
        while True:
            item = self._items.get()
            try:
                if item is _STOP:
                    return
                self._handle_item(item)  # type: ignore[arg-type]
            except Exception as e:
                log.warning("Queue item failed: %s", e)
                self._reporter.report(e)
            finally:
                self._items.task_done()
