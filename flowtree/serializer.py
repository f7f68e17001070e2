import json
from typing import List

from .tree import Document, Node

INDENT = "  "


def _escape(line: str) -> str:
    # a leading backslash keeps markup characters and indentation literal;
    # "\ " stands for a blank line
    if not line:
        return "\\ "
    if line[:1] in ("%", "(", "\\") or line[:1].isspace():
        return "\\" + line
    return line


def _dump_node(node: Node, depth: int, out: List[str]) -> None:
    pad = INDENT * depth
    head = f"{pad}%{node.tag}"
    if node.attributes:
        pairs = " ".join(f"{k}={json.dumps(v)}" for k, v in node.attributes.items())
        head += f"({pairs})"
    # trailing whitespace and surrounding blank lines are not kept
    text = node.text.strip("\n")
    lines = [l.rstrip() for l in text.splitlines()] if text.strip() else []
    if len(lines) == 1 and not node.children:
        out.append(f"{head} {_escape(lines[0])}")
        return
    out.append(head)
    for line in lines:
        out.append(f"{pad}{INDENT}{_escape(line)}")
    for child in node.children:
        _dump_node(child, depth + 1, out)


def dump(document: Document) -> str:
    """Render a document back to markup that ``parse`` accepts."""
    out: List[str] = []
    _dump_node(document.root, 0, out)
    return "\n".join(out) + "\n"
