"""Synthetic documents for the shell and Python regions of a recipe.

Each region becomes a standalone document with its own URI, derived from the
host URI, the language and the region's ordinal index, so that a region whose
text changes in place keeps the URI known to the embedded-language backend.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass

from lsprotocol.types import Location, Position, Range, TextDocumentItem

from bitbake_analysis.config import Settings
from bitbake_analysis.core.languages import embedded_extension
from bitbake_analysis.core.store import DocumentStore
from bitbake_analysis.embedded.regions import classify_regions
from bitbake_analysis.models import (
    EmbeddedDocumentInfo,
    EmbeddedDocumentsDelta,
    EmbeddedLanguage,
    EmbeddedRegion,
    Point,
)

logger = logging.getLogger(__name__)

# Order in which regions are probed when answering position lookups
LANGUAGE_PRIORITY: tuple[EmbeddedLanguage, ...] = (EmbeddedLanguage.SHELL, EmbeddedLanguage.PYTHON)

EmbeddedDocumentKey = tuple[str, EmbeddedLanguage]


@dataclass(frozen=True)
class EmbeddedPosition:
    document: EmbeddedDocumentInfo
    position: Position


class EmbeddedDocumentManager:
    def __init__(
        self,
        settings: Settings | None = None,
        store: DocumentStore[EmbeddedDocumentKey, list[EmbeddedDocumentInfo]] | None = None,
        on_change: Callable[[EmbeddedDocumentsDelta], None] | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._documents: DocumentStore[EmbeddedDocumentKey, list[EmbeddedDocumentInfo]] = (
            store if store is not None else DocumentStore()
        )
        self._by_embedded_uri: DocumentStore[str, EmbeddedDocumentInfo] = DocumentStore()
        self._on_change = on_change

    @property
    def documents(self) -> DocumentStore[EmbeddedDocumentKey, list[EmbeddedDocumentInfo]]:
        return self._documents

    def embedded_uri(self, host_uri: str, language: EmbeddedLanguage, index: int) -> str:
        digest = hashlib.sha256(host_uri.encode("utf-8")).hexdigest()[:16]
        return f"{self._settings.embedded_scheme}:/{language.value}/{digest}/{index}{embedded_extension(language)}"

    def generate_embedded_language_docs(self, document: TextDocumentItem) -> None:
        regions = classify_regions(document.text)
        delta = EmbeddedDocumentsDelta(host_uri=document.uri)
        for language in EmbeddedLanguage:
            infos = [
                self._make_info(document.uri, region) for region in regions if region.language is language
            ]
            self._install(document.uri, language, infos, delta)
        logger.debug(
            "Embedded documents for %s: %d added, %d updated, %d removed",
            document.uri,
            len(delta.added),
            len(delta.updated),
            len(delta.removed),
        )
        self._notify(delta)

    def _make_info(self, host_uri: str, region: EmbeddedRegion) -> EmbeddedDocumentInfo:
        return EmbeddedDocumentInfo(
            uri=self.embedded_uri(host_uri, region.language, region.index),
            language=region.language,
            host_uri=host_uri,
            region=region,
        )

    def _install(
        self,
        host_uri: str,
        language: EmbeddedLanguage,
        infos: list[EmbeddedDocumentInfo],
        delta: EmbeddedDocumentsDelta,
    ) -> None:
        key = (host_uri, language)
        previous = {info.uri: info for info in (self._documents.get(key) or [])}
        if infos:
            self._documents.put(key, infos)
        else:
            self._documents.pop(key)

        current_uris: set[str] = set()
        for info in infos:
            current_uris.add(info.uri)
            old = previous.get(info.uri)
            if old is None:
                delta.added.append(info.uri)
            elif old.region != info.region:
                delta.updated.append(info.uri)
            self._by_embedded_uri.put(info.uri, info)

        for uri in sorted(previous.keys() - current_uris):
            self._by_embedded_uri.pop(uri)
            delta.removed.append(uri)

    def _notify(self, delta: EmbeddedDocumentsDelta) -> None:
        if self._on_change is None or delta.is_empty:
            return
        try:
            self._on_change(delta)
        except Exception:
            logger.exception("Error in embedded documents listener for %s", delta.host_uri)

    def remove_document(self, uri: str) -> None:
        delta = EmbeddedDocumentsDelta(host_uri=uri)
        for language in EmbeddedLanguage:
            self._install(uri, language, [], delta)
        self._notify(delta)

    def get_embedded_language_doc_infos(self, uri: str, language: EmbeddedLanguage) -> list[EmbeddedDocumentInfo]:
        return list(self._documents.get((uri, language)) or [])

    def get_document_by_embedded_uri(self, embedded_uri: str) -> EmbeddedDocumentInfo | None:
        return self._by_embedded_uri.get(embedded_uri)

    def get_embedded_language_doc_info_on_position(self, uri: str, position: Position) -> EmbeddedDocumentInfo | None:
        point = Point.from_lsp(position)
        for language in LANGUAGE_PRIORITY:
            for info in self._documents.get((uri, language)) or []:
                if info.region.contains(point):
                    return info
        return None

    def get_embedded_language_doc_uri_string_on_position(self, uri: str, position: Position) -> str | None:
        info = self.get_embedded_language_doc_info_on_position(uri, position)
        return info.uri if info is not None else None

    def get_embedded_position(self, uri: str, position: Position) -> EmbeddedPosition | None:
        """Resolve a host position to the embedded document owning it and the mapped position."""
        info = self.get_embedded_language_doc_info_on_position(uri, position)
        if info is None:
            return None
        return EmbeddedPosition(document=info, position=info.to_embedded(Point.from_lsp(position)).to_lsp())

    def map_to_host(self, embedded_uri: str, position: Position) -> Location | None:
        info = self._by_embedded_uri.get(embedded_uri)
        if info is None:
            return None
        host = info.to_host(Point.from_lsp(position)).to_lsp()
        return Location(uri=info.host_uri, range=Range(start=host, end=host))

    def map_range_to_host(self, embedded_uri: str, range_: Range) -> Location | None:
        info = self._by_embedded_uri.get(embedded_uri)
        if info is None:
            return None
        return Location(
            uri=info.host_uri,
            range=Range(
                start=info.to_host(Point.from_lsp(range_.start)).to_lsp(),
                end=info.to_host(Point.from_lsp(range_.end)).to_lsp(),
            ),
        )
