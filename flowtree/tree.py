"""In-memory task tree with stable positional paths.

Every node gets its path once, when the owning ``Document`` is built. The
path is the resume key, so it only depends on the tree's shape:

    /root/group[2]/shell

Each segment is a tag name, with a 1-based index only when the parent has
several children carrying that tag.
"""

from __future__ import annotations
from collections import Counter
from typing import Dict, Iterator, List, Optional

from .errors import TreeStructureError

RESUMES_ATTR = "resumes"
COMPLETE_ATTR = "complete"


class Node:
    def __init__(self, tag: str, attributes: Optional[Dict[str, str]] = None,
                 text: str = "", children: Optional[List["Node"]] = None):
        self.tag = tag
        self.attributes: Dict[str, str] = dict(attributes or {})
        self.text = text
        self.children: List[Node] = list(children or [])
        self._path: Optional[str] = None

    @property
    def path(self) -> str:
        if self._path is None:
            raise AttributeError(f"node <{self.tag}> is not attached to a document")
        return self._path

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(key, default)

    def iter(self) -> Iterator["Node"]:
        yield self
        for child in self.children:
            yield from child.iter()

    def to_dict(self) -> Dict[str, object]:
        return {"tag": self.tag, "path": self._path, "attributes": dict(self.attributes)}

    def __repr__(self) -> str:
        return f"Node({self.tag!r}, path={self._path!r})"


class Document:
    """Owns a node tree and the root book-keeping attributes."""

    def __init__(self, root: Node):
        self.root = root
        self._index: Dict[str, Node] = {}
        self._assign(root, "/" + root.tag)

    def _assign(self, node: Node, path: str) -> None:
        if node._path is not None and node._path != path:
            raise TreeStructureError(f"node {node!r} appears twice in the tree")
        node._path = path
        # collisions are reported by TaskGraph.validate; keep the first here
        self._index.setdefault(path, node)
        counts = Counter(child.tag for child in node.children)
        seen: Counter = Counter()
        for child in node.children:
            seen[child.tag] += 1
            segment = child.tag
            if counts[child.tag] > 1:
                segment = f"{child.tag}[{seen[child.tag]}]"
            self._assign(child, f"{path}/{segment}")

    def find(self, path: str) -> Optional[Node]:
        return self._index.get(path)

    def nodes(self) -> Iterator[Node]:
        return self.root.iter()

    @property
    def resumes(self) -> Optional[str]:
        return self.root.attributes.get(RESUMES_ATTR)

    @property
    def complete(self) -> bool:
        return self.root.attributes.get(COMPLETE_ATTR, "").lower() == "true"
