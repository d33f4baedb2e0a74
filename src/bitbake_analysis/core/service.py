from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from pathlib import Path

from lsprotocol.types import Diagnostic, TextDocumentItem
from tree_sitter import Language

from bitbake_analysis.config import Settings
from bitbake_analysis.core.analyzer import Analyzer
from bitbake_analysis.core.languages import BITBAKE_LANGUAGE, ensure_recipe_file
from bitbake_analysis.core.ports.publisher import DiagnosticsPublisher
from bitbake_analysis.embedded.documents import EmbeddedDocumentManager
from bitbake_analysis.models import EmbeddedDocumentsDelta

logger = logging.getLogger(__name__)


def make_document(uri: str, text: str, version: int = 0) -> TextDocumentItem:
    return TextDocumentItem(uri=uri, language_id=BITBAKE_LANGUAGE, version=version, text=text)


def read_recipe(path: str | Path, version: int = 0) -> TextDocumentItem:
    file_path = ensure_recipe_file(Path(path)).resolve()
    try:
        text = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        text = file_path.read_bytes().decode("utf-8", errors="replace")
    return make_document(file_path.as_uri(), text, version)


class AnalysisService:
    """Fans document events out to the analyzer and the embedded document manager.

    Embedded documents are regenerated synchronously on every event so that
    embedded-language backends always see fresh text; analysis runs as a
    background task and publishes diagnostics once per debounce window.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        publisher: DiagnosticsPublisher | None = None,
        on_embedded_change: Callable[[EmbeddedDocumentsDelta], None] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.analyzer = Analyzer(self.settings, publisher)
        self.embedded = EmbeddedDocumentManager(self.settings, on_change=on_embedded_change)
        self._tasks: set[asyncio.Task[list[Diagnostic]]] = set()

    def initialize(self, language: Language | None = None) -> None:
        self.analyzer.initialize(language)

    def did_open(self, document: TextDocumentItem) -> asyncio.Task[list[Diagnostic]]:
        return self.did_change(document)

    def did_change(self, document: TextDocumentItem) -> asyncio.Task[list[Diagnostic]]:
        self.embedded.generate_embedded_language_docs(document)
        task = asyncio.create_task(self.analyzer.analyze(document))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def did_close(self, uri: str) -> None:
        self.analyzer.remove_document(uri)
        self.embedded.remove_document(uri)

    async def analyze(self, document: TextDocumentItem) -> list[Diagnostic]:
        return await self.did_change(document)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.analyzer.shutdown()
        logger.info("Analysis service closed")
