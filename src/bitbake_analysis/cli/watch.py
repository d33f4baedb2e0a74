import asyncio
from pathlib import Path
from typing import Annotated

import typer
from lsprotocol.types import Diagnostic
from rich.console import Console

from bitbake_analysis.config import Settings
from bitbake_analysis.core.service import AnalysisService, read_recipe
from bitbake_analysis.models import EmbeddedDocumentsDelta
from bitbake_analysis.watcher.watchfiles_adapter import WatchfilesWatcher

console = Console()


def _print_diagnostics(uri: str, diagnostics: list[Diagnostic]) -> None:
    if not diagnostics:
        console.print(f"[green]{uri}[/green]: no syntax errors")
        return
    console.print(f"[red]{uri}[/red]: {len(diagnostics)} syntax error(s)")
    for diagnostic in diagnostics:
        start = diagnostic.range.start
        console.print(f"  {start.line + 1}:{start.character + 1} {diagnostic.message}", markup=False)


def _print_embedded_delta(delta: EmbeddedDocumentsDelta) -> None:
    console.print(
        f"[dim]{delta.host_uri}: embedded documents "
        f"+{len(delta.added)} ~{len(delta.updated)} -{len(delta.removed)}[/dim]"
    )


def watch(
    directory: Annotated[str, typer.Argument(help="Directory containing recipes.")] = ".",
) -> None:
    """Re-analyze recipes whenever they change on disk."""
    service = AnalysisService(Settings.from_env(), _print_diagnostics, _print_embedded_delta)
    service.initialize()
    versions: dict[Path, int] = {}

    async def _on_change(paths: set[Path]) -> None:
        for path in sorted(paths):
            versions[path] = versions.get(path, 0) + 1
            service.did_change(read_recipe(path, versions[path]))

    async def _on_delete(paths: set[Path]) -> None:
        for path in paths:
            versions.pop(path, None)
            service.did_close(path.resolve().as_uri())

    async def _run() -> None:
        watcher = WatchfilesWatcher(directory, _on_change, _on_delete)
        await watcher.start()
        console.print(f"[green]Watching {directory} for recipe changes[/green]")
        try:
            await asyncio.Event().wait()
        finally:
            await watcher.stop()
            await service.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/yellow]")
