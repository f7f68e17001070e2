from __future__ import annotations
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Mapping, Optional, TextIO

from .errors import RegistryLockedError
from .tree import Node
from .types import Environment

# handler(node, env, trace) -> None; raises to signal failure
Handler = Callable[[Node, Environment, TextIO], None]

BUILTIN_TAGS = frozenset({"root", "group", "chdir", "fork", "env", "eval", "shell"})


def echo(node: Node, env: Environment, trace: TextIO) -> None:
    trace.write(node.text.strip() + "\n")


def sleep(node: Node, env: Environment, trace: TextIO) -> None:
    time.sleep(float(node.get("sec", "0")))


DEFAULT_PLUGINS: Dict[str, Handler] = {
    "echo": echo,
    "sleep": sleep,
}


class PluginRegistry:
    """Tag name -> handler for every tag the engine does not handle itself.

    Registration is refused while a run holds the registry.
    """

    def __init__(self, plugins: Optional[Mapping[str, Handler]] = None):
        self._handlers: Dict[str, Handler] = dict(DEFAULT_PLUGINS)
        self._lock = threading.Lock()
        self._running = 0
        if plugins:
            self.update(plugins)

    def register(self, tag: str, handler: Handler) -> None:
        if tag in BUILTIN_TAGS:
            raise ValueError(f"cannot override built-in tag '{tag}'")
        if not callable(handler):
            raise TypeError(f"plugin for '{tag}' is not callable")
        with self._lock:
            if self._running:
                raise RegistryLockedError(f"cannot register '{tag}' while a run is in progress")
            self._handlers[tag] = handler

    def update(self, plugins: Mapping[str, Handler]) -> None:
        for tag, handler in plugins.items():
            self.register(tag, handler)

    def get(self, tag: str) -> Optional[Handler]:
        return self._handlers.get(tag)

    def __contains__(self, tag: str) -> bool:
        return tag in self._handlers

    def tags(self) -> list[str]:
        return sorted(self._handlers)

    @contextmanager
    def locked(self) -> Iterator["PluginRegistry"]:
        with self._lock:
            self._running += 1
        try:
            yield self
        finally:
            with self._lock:
                self._running -= 1
