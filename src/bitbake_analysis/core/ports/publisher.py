from collections.abc import Awaitable
from typing import Protocol

from lsprotocol.types import Diagnostic


class DiagnosticsPublisher(Protocol):
    def __call__(self, uri: str, diagnostics: list[Diagnostic]) -> Awaitable[None] | None: ...
