"""Async document loading with per-slot cancellation.

Each slot ("dataset", "boundary") has at most one in-flight request. Starting
a new one cancels the previous task, and a completion from a superseded task
is never delivered, so a slow old response cannot overwrite fresher state.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable

import httpx
from loguru import logger

from ghost_trees.errors import LoadError

_USER_AGENT = "ghost-trees/0.1.0"


def _is_remote(url: str) -> bool:
    return url.startswith(("http://", "https://"))


async def fetch_document(client: httpx.AsyncClient, url: str, timeout: float = 10.0) -> Any:
    """Fetch and parse a JSON document.

    ``http(s)`` URLs go through ``client``; anything else is read as a local
    file path.

    Raises:
        LoadError: On transport failure, non-2xx status, or invalid JSON.
    """
    if not _is_remote(url):
        path = Path(url).expanduser()
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise LoadError(f"Failed to read {url}: {e}") from e
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise LoadError(f"Failed to parse JSON from {url}: {e}") from e

    try:
        resp = await client.get(url, headers={"User-Agent": _USER_AGENT}, timeout=timeout)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise LoadError(f"Failed to fetch {url}: {e}") from e
    if resp.status_code >= 400:
        raise LoadError(f"Failed to fetch {url} ({resp.status_code})")
    try:
        return resp.json()
    except ValueError as e:
        raise LoadError(f"Failed to parse JSON from {url}: {e}") from e


class DocumentLoader:
    """Runs one cancellable fetch task per slot."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 10.0) -> None:
        self._client = client
        self._timeout = timeout
        self._tasks: dict[str, asyncio.Task] = {}

    def start(
        self,
        slot: str,
        url: str,
        on_success: Callable[[Any], None],
        on_error: Callable[[str], None],
    ) -> asyncio.Task:
        """Start fetching ``url`` into ``slot``, cancelling any earlier fetch.

        Must be called from a running event loop. Exactly one of the
        callbacks runs, and only if this task is still the slot's current one.
        """
        previous = self._tasks.get(slot)
        if previous is not None and not previous.done():
            logger.debug(f"Cancelling superseded {slot} load")
            previous.cancel()

        task = asyncio.get_running_loop().create_task(
            self._run(slot, url, on_success, on_error)
        )
        self._tasks[slot] = task
        return task

    async def _run(
        self,
        slot: str,
        url: str,
        on_success: Callable[[Any], None],
        on_error: Callable[[str], None],
    ) -> None:
        task = asyncio.current_task()
        try:
            document = await fetch_document(self._client, url, self._timeout)
        except LoadError as e:
            if self._tasks.get(slot) is task:
                on_error(str(e))
            return
        except Exception as e:
            logger.exception(f"Unexpected error loading {slot} from {url}")
            if self._tasks.get(slot) is task:
                on_error(f"Failed to load {url}: {e}")
            return

        if self._tasks.get(slot) is not task:
            return
        logger.info(f"Loaded {slot} document from {url}")
        on_success(document)

    def is_pending(self, slot: str) -> bool:
        task = self._tasks.get(slot)
        return task is not None and not task.done()

    async def wait(self, slot: str) -> None:
        """Wait for the slot's current task; cancellation is not an error."""
        task = self._tasks.get(slot)
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        """Cancel every in-flight task."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
