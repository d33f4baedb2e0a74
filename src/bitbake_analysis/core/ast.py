from collections.abc import Callable, Iterator
from functools import cache
from pathlib import Path
from typing import cast

from tree_sitter import Node, Query, QueryCursor, Tree
from tree_sitter_language_pack import SupportedLanguage, get_language, get_parser

from bitbake_analysis.core.languages import BITBAKE_LANGUAGE
from bitbake_analysis.models import AstNode, FileAst, Point


@cache
def load_query(query_type: str, language: str = BITBAKE_LANGUAGE) -> Query:
    queries_dir = Path(__file__).parent.parent / "queries"
    query_path = queries_dir / f"{language}_{query_type}.scm"
    if not query_path.exists():
        raise FileNotFoundError(f"Query file not found: {query_path}")
    query_text = query_path.read_text(encoding="utf-8")
    return Query(get_language(cast(SupportedLanguage, language)), query_text)


def parse_source(source: str | bytes, language: str = BITBAKE_LANGUAGE) -> Tree:
    parser = get_parser(cast(SupportedLanguage, language))
    return parser.parse(source.encode("utf-8") if isinstance(source, str) else source)


def query_captures(query: Query, root: Node) -> list[tuple[str, Node]]:
    """Return (capture name, node) pairs of every match under ``root``."""
    cursor = QueryCursor(query)
    found: list[tuple[str, Node]] = []
    for _, captures in cursor.matches(root):
        for name, nodes in captures.items():
            found.extend((name, node) for node in nodes)
    return found


def node_text(node: Node) -> str:
    raw = node.text
    if raw is None:
        return ""
    return raw.decode("utf-8", errors="replace")


def is_error_node(node: Node) -> bool:
    return node.is_error or node.is_missing


def walk(root: Node, follow: Callable[[Node], bool] | None = None) -> Iterator[Node]:
    """Yield ``root`` and its descendants in document order.

    Children of a node are skipped when ``follow`` returns False for it.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        if follow is not None and not follow(node):
            continue
        stack.extend(reversed(node.children))


def collect_error_nodes(tree: Tree) -> list[Node]:
    """Return the outermost error-recovery nodes of ``tree``, in document order."""
    return [node for node in walk(tree.root_node, lambda n: not n.is_error) if is_error_node(node)]


def descendant_at(root: Node, row: int, column: int) -> Node | None:
    return root.descendant_for_point_range((row, column), (row, column))


def find_parent(node: Node, predicate: Callable[[Node], bool]) -> Node | None:
    parent = node.parent
    while parent is not None:
        if predicate(parent):
            return parent
        parent = parent.parent
    return None


def snapshot_tree(tree: Tree) -> AstNode:
    def node_to_model(node: Node) -> AstNode:
        children = None
        if node.child_count > 0:
            children = [node_to_model(child) for child in node.children]

        return AstNode(
            type=node.type,
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            start_point=Point(row=node.start_point[0], column=node.start_point[1]),
            end_point=Point(row=node.end_point[0], column=node.end_point[1]),
            is_error=is_error_node(node),
            text=node_text(node) if children is None or node.is_error else None,
            children=children,
        )

    return node_to_model(tree.root_node)


def snapshot_file(tree: Tree, uri: str, language: str) -> FileAst:
    return FileAst(uri=uri, language=language, ast=snapshot_tree(tree))
