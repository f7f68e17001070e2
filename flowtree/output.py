"""Trace and command output channels.

Both channels buffer without bound, so the caller can drain them one after
the other while branches keep writing to either.
"""

import queue
import threading
from typing import Iterator, List, TextIO

_EOF = object()


class OutputChannel:
    """Thread-safe, file-like text channel with a single reader."""

    def __init__(self, name: str):
        self.name = name
        self._chunks: "queue.SimpleQueue[object]" = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: str | bytes) -> int:
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8", errors="replace")
        elif not isinstance(data, str):
            raise TypeError(f"{self.name} channel accepts str or bytes, not {type(data).__name__}")
        with self._lock:
            if self._closed:
                raise ValueError(f"write to closed {self.name} channel")
            self._chunks.put(data)
        return len(data)

    def writeline(self, line: str) -> None:
        self.write(line if line.endswith("\n") else line + "\n")

    def writelines(self, lines) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        with self._lock:
            if not self._closed:
                self._closed = True
                self._chunks.put(_EOF)

    def __iter__(self) -> Iterator[str]:
        """Yield complete lines until the channel is closed."""
        pending = ""
        while True:
            chunk = self._chunks.get()
            if chunk is _EOF:
                break
            pending += chunk
            *lines, pending = pending.split("\n")
            for line in lines:
                yield line + "\n"
        if pending:
            yield pending + "\n"


def drain(channel: OutputChannel, sink: TextIO, label: str) -> List[str]:
    """Copy a channel into ``sink`` between ``<label>`` markers."""
    lines: List[str] = []
    sink.write(f"<{label}>\n")
    for line in channel:
        sink.write(line)
        lines.append(line)
    sink.write(f"</{label}>\n")
    sink.flush()
    return lines
