"""A pool of worker threads that run functions at given deadlines."""

from __future__ import annotations

import heapq
import itertools
import logging
import os
import threading
import time
from typing import Callable, Optional

_log = logging.getLogger(__name__)


class TimedSched:
    """Runs each submitted function once its ``time.monotonic()`` deadline passes."""

    def __init__(self, parallel: Optional[int] = None) -> None:
        if parallel is None:
            parallel = os.cpu_count() or 1
        if parallel < 1:
            raise ValueError(f"parallel must be positive, got {parallel}")
        self._tasks: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._closed = False
        self._workers = [
            threading.Thread(target=self._run, daemon=True) for _ in range(parallel)
        ]
        for worker in self._workers:
            worker.start()

    def _next_task(self) -> Optional[Callable[[], None]]:
        with self._cond:
            while not self._closed:
                if not self._tasks:
                    self._cond.wait()
                    continue
                delay = self._tasks[0][0] - time.monotonic()
                if delay <= 0:
                    return heapq.heappop(self._tasks)[2]
                self._cond.wait(delay)
            return None

    def _run(self) -> None:
        while True:
            func = self._next_task()
            if func is None:
                return
            try:
                func()
            except Exception:  # noqa: BLE001 - one failing task must not stop the worker
                _log.exception("scheduled task failed")

    def put(self, func: Callable[[], None], deadline: float) -> None:
        """Schedule ``func`` to run at ``deadline`` (a ``time.monotonic()`` value)."""
        with self._cond:
            if self._closed:
                return
            heapq.heappush(self._tasks, (deadline, next(self._seq), func))
            self._cond.notify()

    def close(self) -> None:
        """Stop the workers; tasks not yet run are dropped."""
        with self._cond:
            self._closed = True
            self._tasks.clear()
            self._cond.notify_all()

    def __enter__(self) -> "TimedSched":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()