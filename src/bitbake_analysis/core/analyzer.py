"""Incremental analysis of BitBake recipes.

Each pass parses the full document text, indexes its global declarations and
swaps the result into the document store. Diagnostics are debounced per
document: a burst of edits inside the quiescence window yields a single
diagnostic pass over the most recently installed tree.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass

from lsprotocol.types import Diagnostic, SymbolInformation, TextDocumentItem, TextDocumentPositionParams
from tree_sitter import Language, Node, Parser, Tree

from bitbake_analysis.config import Settings
from bitbake_analysis.core.ast import descendant_at, node_text, snapshot_tree
from bitbake_analysis.core.debounce import KeyedDebouncer
from bitbake_analysis.core.declarations import GlobalDeclarations, get_global_declarations
from bitbake_analysis.core.diagnostics import compute_diagnostics
from bitbake_analysis.core.languages import load_bitbake_language
from bitbake_analysis.core.ports.publisher import DiagnosticsPublisher
from bitbake_analysis.core.store import DocumentStore
from bitbake_analysis.models import AstNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalyzedDocument:
    document: TextDocumentItem
    tree: Tree
    global_declarations: GlobalDeclarations
    generation: int


class Analyzer:
    def __init__(
        self,
        settings: Settings | None = None,
        publisher: DiagnosticsPublisher | None = None,
        store: DocumentStore[str, AnalyzedDocument] | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._publisher = publisher
        self._documents: DocumentStore[str, AnalyzedDocument] = store if store is not None else DocumentStore()
        self._language: Language | None = None
        self._generation_counter = itertools.count(1)
        self._generations: dict[str, int] = {}
        self._debouncer: KeyedDebouncer[str, list[Diagnostic]] = KeyedDebouncer(
            self._settings.debounce_seconds, self._execute_analysis
        )
        self._publish_tasks: set[asyncio.Task[None]] = set()

    def initialize(self, language: Language | None = None) -> None:
        self._language = language if language is not None else load_bitbake_language()
        logger.info("Analyzer initialized")

    @property
    def is_initialized(self) -> bool:
        return self._language is not None

    @property
    def documents(self) -> DocumentStore[str, AnalyzedDocument]:
        return self._documents

    async def analyze(self, document: TextDocumentItem, uri: str | None = None) -> list[Diagnostic]:
        """Parse ``document`` and return the diagnostics of the current debounce window."""
        uri = uri or document.uri
        language = self._language
        if language is None:
            logger.warning("The analyzer is not initialized with a parser, skipping %s", uri)
            return []

        # Unique per analyzer; closing a document does not reset it
        generation = next(self._generation_counter)
        self._generations[uri] = generation
        tree = await asyncio.to_thread(self._parse, language, document.text)

        if uri not in self._generations:
            logger.debug("Document %s was closed during analysis", uri)
            return []
        if self._generations[uri] == generation:
            self._documents.put(
                uri,
                AnalyzedDocument(
                    document=document,
                    tree=tree,
                    global_declarations=get_global_declarations(tree, uri),
                    generation=generation,
                ),
            )
        else:
            logger.debug("Discarding stale analysis of %s (generation %d)", uri, generation)

        return await self._debouncer(uri)

    def _parse(self, language: Language, text: str) -> Tree:
        return Parser(language).parse(text.encode("utf-8"))

    def _execute_analysis(self, uri: str) -> list[Diagnostic]:
        analyzed = self._documents.get(uri)
        if analyzed is None:
            return []
        diagnostics = compute_diagnostics(analyzed.tree, self._settings.diagnostic_source)
        logger.debug("Computed %d diagnostic(s) for %s", len(diagnostics), uri)
        self._publish(uri, diagnostics)
        return diagnostics

    def _publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        if self._publisher is None:
            return
        try:
            result = self._publisher(uri, diagnostics)
        except Exception:
            logger.exception("Error in diagnostics publisher for %s", uri)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._publish_tasks.add(task)
            task.add_done_callback(self._publish_done)

    def _publish_done(self, task: asyncio.Task[None]) -> None:
        self._publish_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Error in diagnostics publisher", exc_info=task.exception())

    def remove_document(self, uri: str) -> None:
        self._generations.pop(uri, None)
        self._documents.pop(uri)
        self._debouncer.discard(uri, [])

    def shutdown(self) -> None:
        self._debouncer.cancel_all()

    def get_analyzed_document(self, uri: str) -> AnalyzedDocument | None:
        return self._documents.get(uri)

    def get_syntax_tree(self, uri: str) -> AstNode | None:
        analyzed = self._documents.get(uri)
        if analyzed is None:
            return None
        return snapshot_tree(analyzed.tree)

    def get_global_declaration_symbols(self, uri: str) -> list[SymbolInformation]:
        analyzed = self._documents.get(uri)
        if analyzed is None:
            return []
        return list(analyzed.global_declarations.values())

    def get_declaration(self, uri: str, name: str) -> SymbolInformation | None:
        analyzed = self._documents.get(uri)
        if analyzed is None:
            return None
        return analyzed.global_declarations.get(name)

    def word_at_point(self, uri: str, line: int, column: int) -> str | None:
        """Find the full word at the given point."""
        node = self.node_at_point(uri, line, column)
        if node is None or node.child_count > 0:
            return None
        word = node_text(node).strip()
        return word or None

    def word_at_point_from_text_position(self, params: TextDocumentPositionParams) -> str | None:
        return self.word_at_point(params.text_document.uri, params.position.line, params.position.character)

    def node_at_point(self, uri: str, line: int, column: int) -> Node | None:
        analyzed = self._documents.get(uri)
        if analyzed is None:
            return None
        root = analyzed.tree.root_node
        if root is None:
            # Lacking root node (failed parse)
            return None
        return descendant_at(root, line, column)
