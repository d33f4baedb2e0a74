"""Unit tests for the incremental analyzer, using the tree-sitter BitBake grammar."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import pytest
from lsprotocol.types import (
    Diagnostic,
    DiagnosticSeverity,
    Position,
    SymbolKind,
    TextDocumentIdentifier,
    TextDocumentPositionParams,
)
from tree_sitter import Language, Tree

from bitbake_analysis.config import Settings
from bitbake_analysis.core.analyzer import Analyzer
from bitbake_analysis.core.service import make_document

URI = "file:///layers/meta-test/recipes-test/test_1.0.bb"

VALID_RECIPE = """DESCRIPTION = "x"
LICENSE = "MIT"

do_install() {
    echo hi
}
"""

UNTERMINATED_STRING = 'DESCRIPTION = "x\n'


class TestUninitialized:
    @pytest.mark.asyncio
    async def test_analyze_without_parser_returns_no_diagnostics(self) -> None:
        analyzer = Analyzer(Settings(debounce_ms=0))

        result = await analyzer.analyze(make_document(URI, VALID_RECIPE))

        assert result == []
        assert analyzer.is_initialized is False
        assert analyzer.get_analyzed_document(URI) is None

    def test_queries_on_unknown_document(self, analyzer: Analyzer) -> None:
        assert analyzer.get_global_declaration_symbols(URI) == []
        assert analyzer.node_at_point(URI, 0, 0) is None
        assert analyzer.word_at_point(URI, 0, 0) is None
        assert analyzer.get_syntax_tree(URI) is None
        assert analyzer.get_declaration(URI, "DESCRIPTION") is None


class TestDiagnostics:
    @pytest.mark.asyncio
    async def test_valid_recipe_has_no_diagnostics(self, analyzer: Analyzer) -> None:
        diagnostics = await analyzer.analyze(make_document(URI, VALID_RECIPE))

        analyzed = analyzer.get_analyzed_document(URI)
        assert analyzed is not None
        assert analyzed.tree.root_node.has_error is False
        assert diagnostics == []

    @pytest.mark.asyncio
    async def test_unterminated_string(self, analyzer: Analyzer) -> None:
        diagnostics = await analyzer.analyze(make_document(URI, UNTERMINATED_STRING))

        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert diagnostic.severity == DiagnosticSeverity.Error
        assert diagnostic.source == "bitbake"
        assert diagnostic.range.start.line == 0
        assert '"x' in diagnostic.message or diagnostic.message.startswith("Missing")

    @pytest.mark.asyncio
    async def test_diagnostic_source_comes_from_settings(self, bitbake_language: Language) -> None:
        analyzer = Analyzer(Settings(debounce_ms=0, diagnostic_source="yocto"))
        analyzer.initialize(bitbake_language)

        diagnostics = await analyzer.analyze(make_document(URI, UNTERMINATED_STRING))

        assert {d.source for d in diagnostics} == {"yocto"}

    @pytest.mark.asyncio
    async def test_reanalysis_is_idempotent(self, analyzer: Analyzer) -> None:
        text = VALID_RECIPE + UNTERMINATED_STRING
        first = await analyzer.analyze(make_document(URI, text))
        first_symbols = analyzer.get_global_declaration_symbols(URI)

        second = await analyzer.analyze(make_document(URI, text, 1))
        second_symbols = analyzer.get_global_declaration_symbols(URI)

        assert first == second
        assert first_symbols == second_symbols


class TestDebounce:
    @pytest.mark.asyncio
    async def test_burst_of_edits_publishes_once_with_latest_text(self, bitbake_language: Language) -> None:
        published: list[tuple[str, list[Diagnostic]]] = []
        analyzer = Analyzer(Settings(debounce_ms=50), publisher=lambda uri, d: published.append((uri, d)))
        analyzer.initialize(bitbake_language)

        texts = [VALID_RECIPE] * 4 + [UNTERMINATED_STRING]
        results = await asyncio.gather(
            *(analyzer.analyze(make_document(URI, text, version)) for version, text in enumerate(texts))
        )

        assert len(published) == 1
        uri, diagnostics = published[0]
        assert uri == URI
        assert len(diagnostics) == 1
        assert all(result == diagnostics for result in results)

        analyzed = analyzer.get_analyzed_document(URI)
        assert analyzed is not None
        assert analyzed.document.text == UNTERMINATED_STRING

    @pytest.mark.asyncio
    async def test_separate_windows_publish_separately(self, bitbake_language: Language) -> None:
        published: list[str] = []
        analyzer = Analyzer(Settings(debounce_ms=10), publisher=lambda uri, d: published.append(uri))
        analyzer.initialize(bitbake_language)

        await analyzer.analyze(make_document(URI, VALID_RECIPE))
        await analyzer.analyze(make_document(URI, VALID_RECIPE, 1))

        assert published == [URI, URI]

    @pytest.mark.asyncio
    async def test_documents_are_debounced_independently(self, bitbake_language: Language) -> None:
        published: list[str] = []
        analyzer = Analyzer(Settings(debounce_ms=20), publisher=lambda uri, d: published.append(uri))
        analyzer.initialize(bitbake_language)

        other = "file:///layers/meta-test/recipes-test/other_1.0.bb"
        await asyncio.gather(
            analyzer.analyze(make_document(URI, VALID_RECIPE)),
            analyzer.analyze(make_document(other, VALID_RECIPE)),
        )

        assert sorted(published) == sorted([URI, other])

    @pytest.mark.asyncio
    async def test_async_publisher_is_awaited(self, bitbake_language: Language) -> None:
        received = asyncio.Event()

        async def _publish(uri: str, diagnostics: list[Diagnostic]) -> None:
            received.set()

        analyzer = Analyzer(Settings(debounce_ms=0), publisher=_publish)
        analyzer.initialize(bitbake_language)
        await analyzer.analyze(make_document(URI, VALID_RECIPE))

        await asyncio.wait_for(received.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_remove_document_resolves_pending_pass(self, bitbake_language: Language) -> None:
        analyzer = Analyzer(Settings(debounce_ms=10_000))
        analyzer.initialize(bitbake_language)

        task = asyncio.create_task(analyzer.analyze(make_document(URI, UNTERMINATED_STRING)))
        for _ in range(200):
            if analyzer.get_analyzed_document(URI) is not None:
                break
            await asyncio.sleep(0.01)
        analyzer.remove_document(URI)

        assert await asyncio.wait_for(task, timeout=1) == []
        assert analyzer.get_analyzed_document(URI) is None


class TestDeclarations:
    @pytest.mark.asyncio
    async def test_global_declarations(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, VALID_RECIPE))

        symbols = {s.name: s for s in analyzer.get_global_declaration_symbols(URI)}

        assert symbols["DESCRIPTION"].kind == SymbolKind.Variable
        assert symbols["LICENSE"].kind == SymbolKind.Variable
        assert symbols["do_install"].kind == SymbolKind.Function
        assert symbols["DESCRIPTION"].location.uri == URI
        assert symbols["DESCRIPTION"].location.range.start == Position(line=0, character=0)
        assert symbols["do_install"].location.range.start.line == 3

    @pytest.mark.asyncio
    async def test_declaration_lookup(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, VALID_RECIPE))

        symbol = analyzer.get_declaration(URI, "LICENSE")

        assert symbol is not None
        assert symbol.location.range.start.line == 1

    @pytest.mark.asyncio
    async def test_new_analysis_replaces_declarations(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, VALID_RECIPE))
        await analyzer.analyze(make_document(URI, 'SUMMARY = "y"\n', 1))

        names = {s.name for s in analyzer.get_global_declaration_symbols(URI)}

        assert names == {"SUMMARY"}


class TestWordAtPoint:
    @pytest.mark.asyncio
    async def test_variable_name(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, 'DESCRIPTION = "x"\n'))

        assert analyzer.word_at_point(URI, 0, 2) == "DESCRIPTION"

    @pytest.mark.asyncio
    async def test_inside_string_literal(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, 'DESCRIPTION = "x"\n'))

        assert analyzer.word_at_point(URI, 0, 15) == "x"

    @pytest.mark.asyncio
    async def test_from_text_position(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, 'DESCRIPTION = "x"\n'))
        params = TextDocumentPositionParams(
            text_document=TextDocumentIdentifier(uri=URI), position=Position(line=0, character=5)
        )

        assert analyzer.word_at_point_from_text_position(params) == "DESCRIPTION"

    @pytest.mark.asyncio
    async def test_node_at_point(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, 'DESCRIPTION = "x"\n'))

        node = analyzer.node_at_point(URI, 0, 2)

        assert node is not None
        assert node.child_count == 0
        assert node.start_point == (0, 0)


class TestSyntaxTreeSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot_matches_tree(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, UNTERMINATED_STRING))

        snapshot = analyzer.get_syntax_tree(URI)
        analyzed = analyzer.get_analyzed_document(URI)

        assert snapshot is not None and analyzed is not None
        assert snapshot.type == analyzed.tree.root_node.type
        assert snapshot.end_byte == analyzed.tree.root_node.end_byte

        def _has_error(node) -> bool:  # type: ignore[no-untyped-def]
            return node.is_error or any(_has_error(c) for c in node.children or [])

        assert _has_error(snapshot)


def _slow_for(analyzer: Analyzer, marker: str) -> Callable[[Language, str], Tree]:
    parse = analyzer._parse

    def _parse(language: Language, text: str) -> Tree:
        if marker in text:
            time.sleep(0.2)
        return parse(language, text)

    return _parse


class TestOrdering:
    @pytest.mark.asyncio
    async def test_slow_older_pass_does_not_replace_newer_document(
        self, analyzer: Analyzer, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(analyzer, "_parse", _slow_for(analyzer, "OLD"))

        older = asyncio.create_task(analyzer.analyze(make_document(URI, 'OLD = "1"\n')))
        await asyncio.sleep(0)
        await analyzer.analyze(make_document(URI, 'NEW = "2"\n', 1))
        await older

        analyzed = analyzer.get_analyzed_document(URI)
        assert analyzed is not None
        assert analyzed.document.text == 'NEW = "2"\n'
        assert {s.name for s in analyzer.get_global_declaration_symbols(URI)} == {"NEW"}

    @pytest.mark.asyncio
    async def test_pass_started_before_close_does_not_replace_reopened_document(
        self, analyzer: Analyzer, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(analyzer, "_parse", _slow_for(analyzer, "OLD"))

        older = asyncio.create_task(analyzer.analyze(make_document(URI, 'OLD = "1"\n')))
        await asyncio.sleep(0)
        analyzer.remove_document(URI)
        await analyzer.analyze(make_document(URI, 'NEW = "2"\n'))
        await older

        analyzed = analyzer.get_analyzed_document(URI)
        assert analyzed is not None
        assert analyzed.document.text == 'NEW = "2"\n'
        assert analyzer.get_declaration(URI, "OLD") is None

    @pytest.mark.asyncio
    async def test_generations_increase_across_reopen(self, analyzer: Analyzer) -> None:
        await analyzer.analyze(make_document(URI, VALID_RECIPE))
        first = analyzer.get_analyzed_document(URI)
        analyzer.remove_document(URI)
        await analyzer.analyze(make_document(URI, VALID_RECIPE))
        second = analyzer.get_analyzed_document(URI)

        assert first is not None and second is not None
        assert second.generation > first.generation

    @pytest.mark.asyncio
    async def test_parse_receives_initialized_language(
        self, analyzer: Analyzer, bitbake_language: Language, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        parse = analyzer._parse
        seen: list[Language] = []

        def _parse(language: Language, text: str) -> Tree:
            seen.append(language)
            return parse(language, text)

        monkeypatch.setattr(analyzer, "_parse", _parse)
        await analyzer.analyze(make_document(URI, VALID_RECIPE))

        assert seen == [bitbake_language]
