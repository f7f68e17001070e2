"""Graph view of a task tree.

Nodes are keyed by path, edges run parent -> child. Used to reject trees
whose paths collide before a run, and to report resume progress.
"""

from typing import Dict, List

import networkx as nx

from .errors import TreeStructureError
from .persistence import ResumeStore
from .tree import Document


class TaskGraph:
    def __init__(self, graph: nx.DiGraph, root: str, duplicates: List[str]):
        self.graph = graph
        self.root = root
        self._duplicates = duplicates

    @classmethod
    def from_document(cls, document: Document) -> "TaskGraph":
        graph = nx.DiGraph()
        duplicates: List[str] = []
        for node in document.nodes():
            if node.path in graph.nodes:
                duplicates.append(node.path)
                continue
            graph.add_node(node.path, tag=node.tag)
        for node in document.nodes():
            for child in node.children:
                if child.path != node.path:
                    graph.add_edge(node.path, child.path)
        return cls(graph, document.root.path, duplicates)

    def validate(self) -> None:
        if self._duplicates:
            raise TreeStructureError(f"duplicate node paths: {sorted(set(self._duplicates))}")
        if not nx.is_arborescence(self.graph):
            raise TreeStructureError("task tree is not a tree rooted at " + self.root)

    def pending(self, store: ResumeStore) -> List[str]:
        """Paths that a rerun would still visit, in document order."""
        done = set()
        for path in store.paths():
            if path in self.graph.nodes:
                done.add(path)
                done.update(nx.descendants(self.graph, path))
        order = nx.dfs_preorder_nodes(self.graph, self.root)
        return [p for p in order if p not in done]

    def progress(self, store: ResumeStore) -> Dict[str, int]:
        total = self.graph.number_of_nodes()
        pending = len(self.pending(store))
        return {"completed": total - pending, "total": total}
