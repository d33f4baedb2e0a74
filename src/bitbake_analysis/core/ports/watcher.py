from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, Protocol

RecipeCallback = Callable[[set[Path]], Coroutine[Any, Any, None]]


class RecipeWatcherPort(Protocol):
    """Reports added, modified and deleted recipes under a directory."""

    @property
    def running(self) -> bool: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...
