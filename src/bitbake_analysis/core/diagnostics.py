from lsprotocol.types import Diagnostic, DiagnosticSeverity
from tree_sitter import Node, Tree

from bitbake_analysis.core.ast import collect_error_nodes, node_text
from bitbake_analysis.core.declarations import node_range


def diagnostic_message(node: Node) -> str:
    if node.is_missing:
        return f'Missing "{node.type}"'
    return f'Invalid syntax "{node_text(node).strip()}"'


def compute_diagnostics(tree: Tree, source: str) -> list[Diagnostic]:
    """One error diagnostic per error-recovery node, spanning the node exactly."""
    return [
        Diagnostic(
            range=node_range(node),
            message=diagnostic_message(node),
            severity=DiagnosticSeverity.Error,
            source=source,
        )
        for node in collect_error_nodes(tree)
    ]
