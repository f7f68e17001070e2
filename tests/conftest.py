"""
Test configuration and fixtures for the flowtree test suite.
"""
import io
import json
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from flowtree import Engine


class Outputs:
    """String sinks for the system and command channels."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.system = io.StringIO()
        self.command = io.StringIO()

    def records(self) -> List[List[Any]]:
        """JSON trace records written to the system channel."""
        return [json.loads(l) for l in self.system.getvalue().splitlines() if l.startswith('["')]

    def events(self, event: str) -> List[str]:
        return [r[2] for r in self.records() if r[0] == event]

    def plain_system_lines(self) -> List[str]:
        return [l for l in self.system.getvalue().splitlines()
                if not l.startswith('["') and not l.startswith("<")]


class Recorder:
    """Plugins that record what they saw, safe to call from fork branches."""

    def __init__(self):
        self.calls: List[str] = []
        self.seen_env: Dict[str, Dict[str, str]] = {}
        self.failing = set()
        self._lock = threading.Lock()

    def mark(self, node, env, trace):
        with self._lock:
            self.calls.append(node.get("name"))

    def probe(self, node, env, trace):
        with self._lock:
            self.seen_env[node.get("name")] = dict(env)

    def check(self, node, env, trace):
        name = node.get("name")
        if name in self.failing:
            raise RuntimeError(f"check {name} failed")
        with self._lock:
            self.calls.append(name)

    def plugins(self):
        return {"mark": self.mark, "probe": self.probe, "check": self.check}


@pytest.fixture
def outputs() -> Outputs:
    return Outputs()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_engine(outputs, recorder):
    """Return a factory for engines writing into ``outputs``."""
    def _make(**kwargs) -> Engine:
        kwargs.setdefault("plugins", recorder.plugins())
        return Engine(system_output=outputs.system, command_output=outputs.command, **kwargs)
    return _make
