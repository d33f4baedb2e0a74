import asyncio
from collections.abc import Sequence
from typing import Annotated, Any

import typer
from lsprotocol.types import Diagnostic, Range, TextDocumentItem
from rich.console import Console
from rich.table import Table

from bitbake_analysis.config import Settings
from bitbake_analysis.core.languages import normalize_embedded_language
from bitbake_analysis.core.service import AnalysisService, read_recipe
from bitbake_analysis.errors import BitbakeAnalysisError
from bitbake_analysis.models import EmbeddedLanguage

console = Console()

PathArgument = Annotated[str, typer.Argument(help="Path to a recipe (.bb, .bbappend, .bbclass, .inc, .conf).")]


def _render_table(headers: Sequence[str], rows: Sequence[tuple[Any, ...]]) -> None:
    table = Table(show_lines=False)
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*(str(v) for v in row))
    console.print(table)
    console.print(f"({len(rows)} rows)")


def _format_range(range_: Range) -> str:
    return f"{range_.start.line}:{range_.start.character}-{range_.end.line}:{range_.end.character}"


def _load(path: str) -> TextDocumentItem:
    try:
        return read_recipe(path)
    except (BitbakeAnalysisError, FileNotFoundError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from None


def _analyze(path: str) -> tuple[AnalysisService, TextDocumentItem, list[Diagnostic]]:
    """Run a single, non-debounced pass over ``path``."""
    document = _load(path)
    service = AnalysisService(Settings.from_env().model_copy(update={"debounce_ms": 0}))
    service.initialize()

    async def _run() -> list[Diagnostic]:
        try:
            return await service.analyze(document)
        finally:
            await service.close()

    return service, document, asyncio.run(_run())


def diagnostics(path: PathArgument) -> None:
    """Report syntax errors of a recipe."""
    _, _, found = _analyze(path)
    _render_table(
        ["range", "severity", "message", "source"],
        [(_format_range(d.range), d.severity.name if d.severity else "", d.message, d.source) for d in found],
    )


def symbols(path: PathArgument) -> None:
    """List the global declarations of a recipe."""
    service, document, _ = _analyze(path)
    found = sorted(
        service.analyzer.get_global_declaration_symbols(document.uri),
        key=lambda s: (s.location.range.start.line, s.location.range.start.character),
    )
    _render_table(["name", "kind", "range"], [(s.name, s.kind.name, _format_range(s.location.range)) for s in found])


def word(
    path: PathArgument,
    line: Annotated[int, typer.Argument(help="Zero-based line.")],
    column: Annotated[int, typer.Argument(help="Zero-based column.")],
) -> None:
    """Print the token at a position."""
    service, document, _ = _analyze(path)
    found = service.analyzer.word_at_point(document.uri, line, column)
    if found is None:
        console.print("[yellow]No word at this position[/yellow]")
        raise typer.Exit(code=1)
    console.print(found)


def tree(path: PathArgument) -> None:
    """Dump the syntax tree of a recipe as JSON."""
    service, document, _ = _analyze(path)
    snapshot = service.analyzer.get_syntax_tree(document.uri)
    if snapshot is None:
        console.print("[red]No syntax tree available[/red]")
        raise typer.Exit(code=1)
    console.print_json(snapshot.model_dump_json(exclude_none=True))


def regions(path: PathArgument) -> None:
    """List the embedded shell and Python regions of a recipe."""
    document = _load(path)
    service = AnalysisService(Settings.from_env())
    service.embedded.generate_embedded_language_docs(document)
    infos = [
        info
        for language in EmbeddedLanguage
        for info in service.embedded.get_embedded_language_doc_infos(document.uri, language)
    ]
    rows = []
    for info in sorted(infos, key=lambda i: (i.region.start.row, i.region.start.column)):
        region = info.region
        rows.append(
            (
                info.language.value,
                region.index,
                f"{region.start.row}:{region.start.column}",
                f"{region.end.row}:{region.end.column}",
                info.uri,
            )
        )
    _render_table(["language", "index", "start", "end", "uri"], rows)


def embedded(
    path: PathArgument,
    language: Annotated[str | None, typer.Option(help="Only show documents of this language (shell, python).")] = None,
) -> None:
    """Print the synthetic documents generated for a recipe."""
    document = _load(path)
    try:
        languages = [normalize_embedded_language(language)] if language else list(EmbeddedLanguage)
    except BitbakeAnalysisError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from None

    service = AnalysisService(Settings.from_env())
    service.embedded.generate_embedded_language_docs(document)
    for lang in languages:
        for info in service.embedded.get_embedded_language_doc_infos(document.uri, lang):
            console.rule(f"[bold]{info.uri}[/bold] (line {info.region.start.row})")
            console.print(info.content, markup=False, highlight=False)
