import queue
import threading
from typing import Optional

from loguru import logger

from .persistence import ResumeStore
from .types import ResumeEntry

_STOP = object()


class CompletionQueue:
    """Applies resume entries to the store from a single consumer thread.

    Walk threads push entries concurrently; the consumer applies them one
    at a time in arrival order until ``shutdown`` is pushed.
    """

    def __init__(self, store: ResumeStore):
        self.store = store
        self._queue: "queue.SimpleQueue[object]" = queue.SimpleQueue()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._consume, name="flowtree-resumes", daemon=True)
        self._thread.start()

    def push(self, entry: ResumeEntry) -> None:
        self._queue.put(entry)

    def shutdown(self) -> None:
        self._queue.put(_STOP)

    def join(self) -> None:
        if self._thread is not None:
            self._thread.join()

    def _consume(self) -> None:
        applied = 0
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            self.store.apply(item)
            applied += 1
        logger.debug("Completion queue stopped after {} entries", applied)
