from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path

from watchfiles import Change, awatch

from bitbake_analysis.core.languages import is_recipe_file
from bitbake_analysis.core.ports.watcher import RecipeCallback

logger = logging.getLogger(__name__)


class WatchfilesWatcher:
    """Watch a directory for recipe changes and trigger a callback.

    Implements the ``RecipeWatcherPort`` protocol. Added and modified recipes
    are reported through ``on_change``, deleted ones through ``on_delete``.
    """

    def __init__(
        self,
        directory: str | Path,
        on_change: RecipeCallback,
        on_delete: RecipeCallback | None = None,
    ) -> None:
        self._directory = Path(directory)
        self._on_change = on_change
        self._on_delete = on_delete
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._watch())
        logger.info("Watcher started for %s", self._directory)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Watcher stopped for %s", self._directory)

    async def _watch(self) -> None:
        async for changes in awatch(self._directory):
            changed: set[Path] = set()
            deleted: set[Path] = set()
            for change, raw_path in changes:
                path = Path(raw_path)
                if not is_recipe_file(path):
                    continue
                if change == Change.deleted:
                    deleted.add(path)
                else:
                    changed.add(path)
            await self._dispatch(self._on_change, changed)
            if self._on_delete is not None:
                await self._dispatch(self._on_delete, deleted)

    async def _dispatch(self, callback: RecipeCallback, paths: set[Path]) -> None:
        if not paths:
            return
        logger.info("Detected changes in %d recipe(s)", len(paths))
        try:
            await callback(paths)
        except Exception:
            logger.exception("Error in watcher callback")
