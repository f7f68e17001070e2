from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

Environment = Dict[str, str]


def coerce_environment(values: Optional[Mapping[Any, Any]]) -> Environment:
    """Keys and values must be strings; anything else is converted."""
    if not values:
        return {}
    return {str(k): str(v) for k, v in values.items()}


@dataclass
class ExecutionOptions:
    working_directory: Optional[str] = None
    # drop inherited variables other than the ones passed explicitly
    unset_inherited_env: bool = True
    new_process_group: bool = True

    def copy(self) -> "ExecutionOptions":
        return replace(self)


@dataclass(frozen=True)
class ResumeEntry:
    """Environment snapshot of a node that finished without error."""
    path: str
    environment: Environment = field(default_factory=dict)


@dataclass
class RunResult:
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def has_error(self) -> bool:
        return self.error is not None

    @property
    def error_detail(self) -> Optional[str]:
        if self.error is None:
            return None
        return repr(self.error)
