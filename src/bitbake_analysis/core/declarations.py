"""Global declarations (tasks, functions, variables) of a recipe syntax tree."""

from lsprotocol.types import Location, Position, Range, SymbolInformation, SymbolKind
from tree_sitter import Node, Tree

from bitbake_analysis.core.ast import node_text, walk

GlobalDeclarations = dict[str, SymbolInformation]

_TREE_SITTER_TYPE_TO_LSP_KIND: dict[str, SymbolKind] = {
    "function_definition": SymbolKind.Function,
    "python_function_definition": SymbolKind.Function,
    "anonymous_python_function": SymbolKind.Function,
    "variable_assignment": SymbolKind.Variable,
}

GLOBAL_DECLARATION_NODE_TYPES = frozenset(_TREE_SITTER_TYPE_TO_LSP_KIND)

ANONYMOUS_PYTHON_FUNCTION_NAME = "__anonymous"


def node_range(node: Node) -> Range:
    return Range(
        start=Position(line=node.start_point[0], character=node.start_point[1]),
        end=Position(line=node.end_point[0], character=node.end_point[1]),
    )


def _declaration_name(node: Node) -> str | None:
    named = node.child_by_field_name("name") or (node.named_children[0] if node.named_child_count else None)
    if named is not None and named.type in ("identifier", "python_identifier", "concatenation"):
        name = node_text(named).strip()
        if name:
            return name
    if node.type == "anonymous_python_function":
        return ANONYMOUS_PYTHON_FUNCTION_NAME
    return None


def declaration_symbol(node: Node, uri: str) -> SymbolInformation | None:
    kind = _TREE_SITTER_TYPE_TO_LSP_KIND.get(node.type)
    if kind is None:
        return None
    name = _declaration_name(node)
    if name is None:
        return None
    return SymbolInformation(name=name, kind=kind, location=Location(uri=uri, range=node_range(node)))


def _descend_into(node: Node) -> bool:
    return node.type not in GLOBAL_DECLARATION_NODE_TYPES and not node.is_error


def get_global_declarations(tree: Tree, uri: str) -> GlobalDeclarations:
    """Index top-level declarations by name; the last definition of a name wins.

    Declaration bodies are not descended into, so assignments inside task or
    function bodies never shadow global ones.
    """
    declarations: GlobalDeclarations = {}
    for node in walk(tree.root_node, _descend_into):
        symbol = declaration_symbol(node, uri)
        if symbol is not None:
            declarations[symbol.name] = symbol
    return declarations
