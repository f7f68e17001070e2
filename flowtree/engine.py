from __future__ import annotations
import json
import os
import subprocess
import sys
import textwrap
import threading
from contextlib import contextmanager
from functools import partial
from typing import Any, Iterator, List, Mapping, Optional, TextIO

from loguru import logger
from opentelemetry import trace

from .config import FORK_POOL_SIZE, EngineSettings
from .errors import (
    FlowTreeError,
    PluginFailureError,
    ScriptError,
    ScriptingDisabledError,
    SubprocessFailedError,
    UnknownTagError,
)
from .graph import TaskGraph
from .ordering import CompletionQueue
from .output import OutputChannel, drain
from .persistence import ResumeStore
from .plugins import Handler, PluginRegistry
from .tree import Document, Node
from .types import Environment, ExecutionOptions, ResumeEntry, RunResult, coerce_environment

# set for every shell command to the path of the node running it
PATH_VARIABLE = "FLOWTREE_PATH"

_tracer = trace.get_tracer(__name__)


def _normalize(env: Environment) -> None:
    if all(isinstance(k, str) and isinstance(v, str) for k, v in env.items()):
        return
    coerced = coerce_environment(env)
    env.clear()
    env.update(coerced)


class Engine:
    """Walks a task tree, skipping nodes recorded as done by an earlier run.

    One walk thread drives the tree; ``fork`` children run on their own
    threads, at most ``pool_size`` of them doing work at once. Completed
    nodes are recorded by a single consumer thread, and the store is written
    back onto the document root when the run ends.
    """

    def __init__(self, pool_size: int = FORK_POOL_SIZE,
                 system_output: Optional[TextIO] = None,
                 command_output: Optional[TextIO] = None,
                 allow_eval: bool = False,
                 plugins: Optional[Mapping[str, Handler] | PluginRegistry] = None):
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.pool_size = pool_size
        self.system_output = system_output
        self.command_output = command_output
        self.allow_eval = allow_eval
        self.plugins = plugins if isinstance(plugins, PluginRegistry) else PluginRegistry(plugins)
        self._pool = threading.BoundedSemaphore(pool_size)
        self._slot = threading.local()
        self._running = threading.Lock()
        self._error: Optional[BaseException] = None
        # per-run state, replaced by perform()
        self._system: Optional[OutputChannel] = None
        self._command: Optional[OutputChannel] = None
        self._store: Optional[ResumeStore] = None
        self._queue: Optional[CompletionQueue] = None

    @classmethod
    def from_settings(cls, settings: Optional[EngineSettings] = None, **kwargs: Any) -> "Engine":
        settings = settings or EngineSettings.from_env()
        return cls(pool_size=settings.pool_size, allow_eval=settings.allow_eval, **kwargs)

    def add_plugins(self, plugins: Optional[Mapping[str, Handler]] = None, **handlers: Handler) -> None:
        self.plugins.update({**(plugins or {}), **handlers})

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def has_error(self) -> bool:
        return self._error is not None

    @property
    def store(self) -> Optional[ResumeStore]:
        return self._store

    # ---------- Run entry ----------
    def perform(self, document: Document, initial_env: Optional[Mapping[Any, Any]] = None,
                rerun: bool = False) -> RunResult:
        """Run ``document`` and write the resume state back onto its root.

        Errors raised by nodes are captured in the result, never raised.
        ``rerun=True`` ignores any resume state the document carries.
        """
        if not self._running.acquire(blocking=False):
            raise FlowTreeError("engine is already running")
        try:
            return self._perform(document, initial_env, rerun)
        finally:
            self._running.release()

    def _perform(self, document: Document, initial_env: Optional[Mapping[Any, Any]], rerun: bool) -> RunResult:
        TaskGraph.from_document(document).validate()
        self._error = None
        self._system = OutputChannel("system")
        self._command = OutputChannel("command")
        self._store = ResumeStore.load(document, restart=rerun)
        self._queue = CompletionQueue(self._store)
        env = coerce_environment(initial_env)

        logger.info("Run started at {} ({} resume entries, pool={})",
                    document.root.path, len(self._store), self.pool_size)
        with self.plugins.locked():
            self._queue.start()
            walker = threading.Thread(target=self._walk, args=(document.root, env), name="flowtree-walk")
            walker.start()
            drain(self._system, self.system_output or sys.stdout, "system output")
            drain(self._command, self.command_output or sys.stdout, "command output")
            walker.join()
            self._queue.join()

        self._store.write_to(document, complete=self._error is None)
        if self._error is None:
            logger.info("Run complete: {} entries recorded", len(self._store))
        else:
            logger.error("Run failed: {!r}", self._error)
        return RunResult(self._error)

    def _walk(self, root: Node, env: Environment) -> None:
        try:
            with _tracer.start_as_current_span("flowtree.run"):
                self._perform_group(root, env, ExecutionOptions())
        except BaseException as e:
            self._error = e
            self._system.write(f"{e!r}\n")
        finally:
            self._system.close()
            self._command.close()
            self._queue.shutdown()

    # ---------- Tree walk ----------
    def _trace(self, event: str, node: Node, env: Environment, element: bool = False) -> None:
        record: List[Any] = [event, threading.current_thread().name, node.path]
        if element:
            record.append(node.to_dict())
        record.append(env)
        self._system.write(json.dumps(record, ensure_ascii=False) + "\n")

    def _perform_group(self, group: Node, env: Environment, opts: ExecutionOptions) -> None:
        if group.path in self._store:
            env.update(self._store.get(group.path))
            self._trace("skip group", group, env)
            return
        self._trace("perform group", group, env)
        with _tracer.start_as_current_span(f"group:{group.path}"):
            for node in group.children:
                self._perform_element(node, env, opts)
        self._queue.push(ResumeEntry(group.path, dict(env)))

    def _perform_element(self, node: Node, env: Environment, opts: ExecutionOptions) -> None:
        if node.path in self._store:
            env.update(self._store.get(node.path))
            if node.tag == "chdir":
                # the working directory is not part of the stored environment
                opts.working_directory = node.text.strip()
            self._trace("skip element", node, env, element=True)
            return
        self._trace("perform element", node, env, element=True)
        self._dispatch(node, env, opts)
        self._queue.push(ResumeEntry(node.path, dict(env)))

    def _dispatch(self, node: Node, env: Environment, opts: ExecutionOptions) -> None:
        match node.tag:
            case "group" | "root":
                self._perform_group(node, dict(env), opts.copy())
            case "chdir":
                opts.working_directory = node.text.strip()
            case "fork":
                self._fork(node, env, opts)
            case "env":
                env.update(coerce_environment(node.attributes))
            case "eval":
                self._eval(node, env, opts)
            case "shell":
                self._shell(node, env, opts)
            case tag:
                self._call_plugin(tag, node, env)

    # ---------- Fork ----------
    @contextmanager
    def _pool_slot(self) -> Iterator[None]:
        self._pool.acquire()
        self._slot.held = True
        try:
            yield
        finally:
            self._slot.held = False
            self._pool.release()

    @contextmanager
    def _slot_released(self) -> Iterator[None]:
        # a branch waiting on a nested fork is not doing work
        held = getattr(self._slot, "held", False)
        if held:
            self._slot.held = False
            self._pool.release()
        try:
            yield
        finally:
            if held:
                self._pool.acquire()
                self._slot.held = True

    def _fork(self, node: Node, env: Environment, opts: ExecutionOptions) -> None:
        errors: List[BaseException] = []
        lock = threading.Lock()

        def branch(child: Node, branch_env: Environment, branch_opts: ExecutionOptions) -> None:
            with self._pool_slot():
                logger.debug("Branch {} started", child.path)
                try:
                    self._perform_element(child, branch_env, branch_opts)
                except BaseException as e:
                    logger.debug("Branch {} failed: {!r}", child.path, e)
                    with lock:
                        errors.append(e)

        threads = [
            threading.Thread(target=branch, args=(child, dict(env), opts.copy()),
                             name=f"flowtree-fork:{child.path}")
            for child in node.children
        ]
        for t in threads:
            t.start()
        with self._slot_released():
            for t in threads:
                t.join()
        if errors:
            raise errors[0]

    # ---------- Leaf actions ----------
    def _eval(self, node: Node, env: Environment, opts: ExecutionOptions) -> None:
        if not self.allow_eval:
            raise ScriptingDisabledError(node.path)
        namespace = {
            "env": env,
            "node": node,
            "opts": opts,
            "stdout": self._command,
            "stderr": self._command,
            "print": partial(print, file=self._command),
        }
        try:
            exec(compile(textwrap.dedent(node.text), node.path, "exec"), namespace)
        except (Exception, SystemExit) as e:
            raise ScriptError(node.path) from e
        finally:
            _normalize(env)

    def _shell(self, node: Node, env: Environment, opts: ExecutionOptions) -> None:
        child_env = dict(env)
        child_env[PATH_VARIABLE] = node.path
        if not opts.unset_inherited_env:
            child_env = {**os.environ, **child_env}
        proc = subprocess.run(
            node.text,
            shell=True,
            env=child_env,
            cwd=opts.working_directory,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=opts.new_process_group,
            encoding="utf-8",
            errors="replace",
        )
        if proc.stdout:
            self._command.writeline(proc.stdout)
        logger.debug("Shell {} exited with {}", node.path, proc.returncode)
        if proc.returncode != 0:
            raise SubprocessFailedError(node.path, proc.returncode, proc.stdout or "")

    def _call_plugin(self, tag: str, node: Node, env: Environment) -> None:
        handler = self.plugins.get(tag)
        if handler is None:
            raise UnknownTagError(tag, node.path)
        try:
            handler(node, env, self._system)
        except FlowTreeError:
            raise
        except (Exception, SystemExit) as e:
            raise PluginFailureError(tag, node.path) from e
        finally:
            _normalize(env)


def run(document: Document, initial_env: Optional[Mapping[Any, Any]] = None, *,
        rerun: bool = False, allow_eval: bool = False,
        plugins: Optional[Mapping[str, Handler]] = None,
        pool_size: int = FORK_POOL_SIZE,
        system_output: Optional[TextIO] = None,
        command_output: Optional[TextIO] = None) -> RunResult:
    engine = Engine(pool_size=pool_size, system_output=system_output,
                    command_output=command_output, allow_eval=allow_eval, plugins=plugins)
    return engine.perform(document, initial_env, rerun=rerun)
