import json
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Tuple

from lark import Lark, Transformer
from lark.indenter import Indenter

from .errors import ParseError
from .tree import Document, Node

GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")

_parser = None


class TreeIndenter(Indenter):
    NL_type = "_NL"
    OPEN_PAREN_types: List[str] = []
    CLOSE_PAREN_types: List[str] = []
    INDENT_type = "_INDENT"
    DEDENT_type = "_DEDENT"
    tab_len = 8


def _unescape(text: str) -> str:
    text = text.rstrip()
    return text[1:] if text.startswith("\\") else text


class _NodeBuilder(Transformer):
    def attr(self, items) -> Tuple[str, str]:
        name, value = items
        return str(name), json.loads(value)

    def attrs(self, items) -> Tuple[str, Dict[str, str]]:
        return "attrs", dict(items)

    def inline(self, items) -> Tuple[str, str]:
        return "text", _unescape(str(items[0]))

    def textline(self, items) -> Tuple[str, str]:
        return "text", _unescape(str(items[0]))

    def body(self, items) -> Tuple[str, List[Any]]:
        return "body", list(items)

    def element(self, items) -> Node:
        tag = str(items[0])[1:]
        attributes: Dict[str, str] = {}
        lines: List[str] = []
        children: List[Node] = []
        for item in items[1:]:
            kind, value = item
            if kind == "attrs":
                attributes = value
            elif kind == "text":
                lines.append(value)
            else:
                for sub in value:
                    if isinstance(sub, Node):
                        children.append(sub)
                    else:
                        lines.append(sub[1])
        return Node(tag, attributes, "\n".join(lines), children)


def _load_parser() -> Lark:
    global _parser
    if _parser is None:
        grammar = GRAMMAR_PATH.read_text(encoding="utf-8")
        _parser = Lark(grammar, start="start", parser="lalr", postlex=TreeIndenter())
    return _parser


def parse(source: str | Path) -> Document:
    try:
        text = source.read_text(encoding="utf-8") if isinstance(source, Path) else str(source)
        text = textwrap.dedent(text)
        if not text.endswith("\n"):
            text += "\n"
        tree = _load_parser().parse(text)
        return Document(_NodeBuilder().transform(tree))
    except Exception as e:
        raise ParseError(str(e)) from e
