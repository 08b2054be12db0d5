"""Storage backends for the installation-state document.

A backend only moves text: the store owns parsing, validation and
subscriber bookkeeping. Both backends hand out at most what the store asks
for: one watch handle at a time, closed when the last subscriber leaves.
"""

import asyncio
import logging
import os
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]


class WatchHandle(ABC):
    """An open change-notification resource."""

    @abstractmethod
    def close(self) -> None: ...

    @property
    @abstractmethod
    def closed(self) -> bool: ...


class StateBackend(ABC):
    """Where the serialized document lives."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location used in log messages."""

    @abstractmethod
    async def load(self) -> str | None:
        """Return the stored text, or None when no document exists."""

    @abstractmethod
    async def save(self, text: str) -> None:
        """Replace the whole document with *text*."""

    @abstractmethod
    async def remove(self) -> bool:
        """Delete the document. Returns False if there was nothing to delete."""

    @abstractmethod
    def open_watch(self, on_change: ChangeHandler, on_error: ErrorHandler) -> WatchHandle:
        """Start delivering change notifications for the document."""


# ---------------------------------------------------------------------------
# In-memory backend (tests, single-process embedding)
# ---------------------------------------------------------------------------


class _MemoryWatch(WatchHandle):
    def __init__(self, backend: "InMemoryBackend", on_change: ChangeHandler, on_error: ErrorHandler):
        self._backend = backend
        self.on_change = on_change
        self.on_error = on_error
        self._closed = False

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._backend._watches.discard(self)

    @property
    def closed(self) -> bool:
        return self._closed


class InMemoryBackend(StateBackend):
    """Keeps the serialized document in a string; notifies watchers after each change."""

    def __init__(self, text: str | None = None) -> None:
        self._text = text
        self._watches: set[_MemoryWatch] = set()
        self._pending: set[asyncio.Task] = set()

    @property
    def location(self) -> str:
        return "memory"

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    async def load(self) -> str | None:
        return self._text

    async def save(self, text: str) -> None:
        self._text = text
        self._notify()

    async def remove(self) -> bool:
        existed = self._text is not None
        self._text = None
        if existed:
            self._notify()
        return existed

    def open_watch(self, on_change: ChangeHandler, on_error: ErrorHandler) -> WatchHandle:
        watch = _MemoryWatch(self, on_change, on_error)
        self._watches.add(watch)
        return watch

    async def fail_watch(self, error: Exception) -> None:
        """Simulate a failure of the notification subsystem."""
        for watch in list(self._watches):
            await watch.on_error(error)

    def _notify(self) -> None:
        # Delivered on the next loop iteration, like an OS notification would be
        for watch in list(self._watches):
            task = asyncio.get_running_loop().create_task(watch.on_change())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)


# ---------------------------------------------------------------------------
# Filesystem backend (production)
# ---------------------------------------------------------------------------


class _PollingWatch(WatchHandle):
    """Polls the stat signature of one file and reports every change."""

    def __init__(self, path: Path, interval: float, on_change: ChangeHandler, on_error: ErrorHandler):
        self._path = path
        self._interval = interval
        self._on_change = on_change
        self._on_error = on_error
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _signature(self) -> tuple[int, int, int] | None:
        try:
            st = await aiofiles.os.stat(self._path)
        except FileNotFoundError:
            return None
        return (st.st_mtime_ns, st.st_size, st.st_ino)

    async def _run(self) -> None:
        try:
            last = await self._signature()
        except OSError as exc:
            await self._on_error(exc)
            last = None

        while True:
            await asyncio.sleep(self._interval)
            try:
                current = await self._signature()
            except OSError as exc:
                logger.error("State file watch failed for %s: %s", self._path, exc)
                await self._on_error(exc)
                continue
            if current != last:
                last = current
                try:
                    await self._on_change()
                except Exception as exc:
                    logger.error("State change handler failed for %s", self._path, exc_info=True)
                    await self._on_error(exc)

    def close(self) -> None:
        if not self._task.done():
            self._task.cancel()

    @property
    def closed(self) -> bool:
        return self._task.done()


class FileBackend(StateBackend):
    """UTF-8 JSON file replaced atomically via a temp file in the same directory."""

    def __init__(self, path: str | os.PathLike, poll_interval: float = 1.0) -> None:
        self.path = Path(path)
        self.poll_interval = poll_interval

    @property
    def location(self) -> str:
        return str(self.path)

    async def load(self) -> str | None:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def save(self, text: str) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(text)
                await f.flush()
                await asyncio.to_thread(os.fsync, f.fileno())
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError:
            try:
                await aiofiles.os.remove(tmp_path)
            except FileNotFoundError:
                pass
            raise

    async def remove(self) -> bool:
        try:
            await aiofiles.os.remove(self.path)
        except FileNotFoundError:
            return False
        return True

    def open_watch(self, on_change: ChangeHandler, on_error: ErrorHandler) -> WatchHandle:
        return _PollingWatch(self.path, self.poll_interval, on_change, on_error)
