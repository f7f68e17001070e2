from .config import EngineSettings
from .engine import Engine, run
from .errors import (
    FlowTreeError,
    ParseError,
    PluginFailureError,
    ScriptError,
    ScriptingDisabledError,
    SubprocessFailedError,
    UnknownTagError,
)
from .parser import parse
from .persistence import ResumeStore
from .plugins import PluginRegistry
from .serializer import dump
from .tree import Document, Node
from .types import ExecutionOptions, ResumeEntry, RunResult

__all__ = [
    "Document",
    "Engine",
    "EngineSettings",
    "ExecutionOptions",
    "FlowTreeError",
    "Node",
    "ParseError",
    "PluginFailureError",
    "PluginRegistry",
    "ResumeEntry",
    "ResumeStore",
    "RunResult",
    "ScriptError",
    "ScriptingDisabledError",
    "SubprocessFailedError",
    "UnknownTagError",
    "dump",
    "parse",
    "run",
]

__version__ = "0.1.0"
