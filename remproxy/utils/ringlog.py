"""A log sink that echoes entries to stdout and keeps the most recent ones."""

from __future__ import annotations

import sys
import threading
from collections import deque
from typing import Union


class RingLogWriter:
    """Keeps the last ``size`` written entries, oldest first."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError(f"ring size must be positive, got {size}")
        self.size = size
        self._entries: deque[str] = deque(maxlen=size)
        self._lock = threading.Lock()

    def write(self, data: Union[bytes, str]) -> int:
        """Store one entry, echo it to stdout and return its length."""
        text = data.decode("utf-8", "replace") if isinstance(data, (bytes, bytearray)) else data
        with self._lock:
            self._entries.append(text)
        sys.stdout.write(text)
        return len(data)

    def recent_logs(self) -> list[str]:
        """Return the retained entries in the order they were written."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __str__(self) -> str:
        return "".join(self.recent_logs())