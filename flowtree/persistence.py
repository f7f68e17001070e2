import json
from typing import Dict, Iterator, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .errors import ResumeStateError
from .tree import COMPLETE_ATTR, RESUMES_ATTR, Document
from .types import Environment, ResumeEntry


class ResumeState(BaseModel):
    """Serialized resume data: path -> environment snapshot."""
    resumes: Dict[str, Dict[str, str]] = Field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: str) -> "ResumeState":
        return cls.model_validate({"resumes": json.loads(raw)})

    def to_json(self) -> str:
        return json.dumps(self.resumes, ensure_ascii=False)


class ResumeStore:
    """Completed-node snapshots for one run.

    Only the completion queue's consumer thread calls ``apply``; walk threads
    read through ``contains``/``get``.
    """

    def __init__(self, entries: Optional[Dict[str, Environment]] = None):
        self._entries: Dict[str, Environment] = dict(entries or {})

    @classmethod
    def load(cls, document: Document, restart: bool = False) -> "ResumeStore":
        raw = document.resumes
        if restart or raw is None:
            return cls()
        try:
            state = ResumeState.from_json(raw)
        except (ValueError, ValidationError) as e:
            raise ResumeStateError(f"invalid {RESUMES_ATTR} attribute: {e}") from e
        logger.debug("Loaded {} resume entries", len(state.resumes))
        return cls(state.resumes)

    def contains(self, path: str) -> bool:
        return path in self._entries

    __contains__ = contains

    def get(self, path: str) -> Environment:
        return dict(self._entries[path])

    def apply(self, entry: ResumeEntry) -> None:
        self._entries[entry.path] = dict(entry.environment)

    def paths(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def dumps(self) -> str:
        return ResumeState(resumes=self._entries).to_json()

    def write_to(self, document: Document, complete: bool) -> None:
        attrs = document.root.attributes
        attrs[RESUMES_ATTR] = self.dumps()
        if complete:
            attrs[COMPLETE_ATTR] = "true"
        else:
            attrs.pop(COMPLETE_ATTR, None)
