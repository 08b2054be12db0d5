"""Shared installation-state store.

Both web tools read and watch the same document; the installer (or the
reconfigurator) is the only writer at any given time. Every write replaces
the whole document so a reader never sees a half-applied change.
"""

import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from kaspa_aio.config import Settings, settings
from kaspa_aio.exceptions import (
    InvalidPhaseTransitionError,
    NoInstallationError,
    StateConflictError,
    StateValidationError,
    StateWriteError,
)
from kaspa_aio.models.installation_state import (
    SCHEMA_VERSION,
    InstallationState,
    can_transition,
    missing_fields,
)
from kaspa_aio.state.backends import FileBackend, StateBackend, WatchHandle

logger = logging.getLogger(__name__)

StateCallback = Callable[[InstallationState | None, Exception | None], Awaitable[None] | None]


class StateStore:
    """Versioned, whole-document store with change notification."""

    def __init__(self, backend: StateBackend) -> None:
        self.backend = backend
        self._subscribers: list[StateCallback] = []
        self._watch: WatchHandle | None = None

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "StateStore":
        """Store backed by the well-known state file of the current project."""
        from kaspa_aio.utils.paths import get_paths

        path = get_paths(config).installation_state
        return cls(FileBackend(path, poll_interval=config.state_watch_poll_seconds))

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read(self) -> InstallationState | None:
        """Return the current state, or None if absent or invalid.

        The reason for a None is only logged: callers get one absence check.
        """
        try:
            text = await self.backend.load()
        except UnicodeDecodeError as e:
            logger.error("Installation state file is corrupted (not UTF-8): %s", e)
            return None
        except OSError as e:
            logger.error("Error reading installation state at %s: %s", self.backend.location, e)
            return None

        if text is None:
            # Normal for a fresh installation
            logger.debug("No installation state at %s", self.backend.location)
            return None

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("Installation state file is corrupted (invalid JSON): %s", e)
            return None

        if not isinstance(document, dict):
            logger.warning("Installation state is not a JSON object")
            return None

        missing = missing_fields(document)
        if missing:
            logger.warning("Installation state is missing required fields: %s", ", ".join(missing))
            return None

        try:
            return InstallationState.model_validate(document)
        except ValidationError as e:
            logger.warning("Installation state failed validation: %s", e)
            return None

    async def has_installation(self) -> bool:
        return await self.read() is not None

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def write(
        self,
        state: InstallationState | Mapping[str, Any],
        *,
        expected_last_modified: datetime | None = None,
    ) -> InstallationState:
        """Validate, stamp ``lastModified`` and replace the whole document.

        When *expected_last_modified* is given the write only proceeds if the
        stored document still carries that timestamp.

        Raises:
            TypeError: *state* is not a mapping or InstallationState.
            StateValidationError: required fields are missing or invalid.
            InvalidPhaseTransitionError: the phase would move backwards.
            StateConflictError: the compare-and-swap check failed.
            StateWriteError: the backend could not persist the document.
        """
        candidate = self._coerce(state)

        current = await self.read()
        if expected_last_modified is not None:
            stored = current.last_modified if current is not None else None
            if stored != expected_last_modified:
                raise StateConflictError(
                    f"Installation state changed since {expected_last_modified.isoformat()} "
                    f"(now {stored.isoformat() if stored else 'absent'})"
                )
        if current is not None and not can_transition(current.phase, candidate.phase):
            raise InvalidPhaseTransitionError(current.phase.value, candidate.phase.value)

        # lastModified never goes backwards, even if the clock does
        stamp = max(datetime.now(UTC), candidate.last_modified)
        if current is not None:
            stamp = max(stamp, current.last_modified)
        stamped = candidate.model_copy(update={"last_modified": stamp})

        text = json.dumps(stamped.to_document(), indent=2, ensure_ascii=False) + "\n"
        try:
            await self.backend.save(text)
        except OSError as e:
            logger.error("Failed to write installation state to %s", self.backend.location, exc_info=True)
            raise StateWriteError(f"Failed to write installation state: {e}") from e

        logger.info(
            "Installation state written (phase=%s, profiles=%d, services=%d)",
            stamped.phase.value, stamped.profiles.count, len(stamped.services),
        )
        return stamped

    async def update(self, updates: Mapping[str, Any]) -> InstallationState:
        """Shallow-merge *updates* into the current state and write it back.

        Raises:
            TypeError: *updates* is not a mapping.
            NoInstallationError: there is no valid state to update.
        """
        if not isinstance(updates, Mapping):
            raise TypeError("Updates must be a mapping")

        current = await self.read()
        if current is None:
            raise NoInstallationError("Cannot update state: no existing installation state found")

        merged = current.to_document()
        for key, value in updates.items():
            merged[_document_key(key)] = value
        return await self.write(merged)

    async def reset(self) -> bool:
        """Delete the document ("start over"). Returns whether one existed."""
        try:
            removed = await self.backend.remove()
        except OSError as e:
            raise StateWriteError(f"Failed to remove installation state: {e}") from e
        if removed:
            logger.info("Installation state at %s was reset", self.backend.location)
        return removed

    @staticmethod
    def _coerce(state: InstallationState | Mapping[str, Any]) -> InstallationState:
        if isinstance(state, InstallationState):
            return state
        if not isinstance(state, Mapping):
            raise TypeError("State must be a valid object")

        missing = missing_fields(state, for_write=True)
        if missing:
            raise StateValidationError(
                f"Installation state is missing required fields: {', '.join(missing)}"
            )
        document = dict(state)
        if "version" not in document and "schemaVersion" not in document:
            document["version"] = SCHEMA_VERSION
        try:
            return InstallationState.model_validate(document)
        except ValidationError as e:
            raise StateValidationError(f"Invalid installation state: {e}") from e

    # ------------------------------------------------------------------
    # Watching
    # ------------------------------------------------------------------

    def watch(self, callback: StateCallback) -> Callable[[], None]:
        """Subscribe to changes; returns an unsubscribe function.

        *callback* receives ``(state, None)`` after a change (state may be
        None if the document was removed or is invalid) or ``(None, error)``
        if the notification subsystem failed. It may be a coroutine function.
        """
        if not callable(callback):
            raise TypeError("Callback must be callable")

        self._subscribers.append(callback)
        if self._watch is None or self._watch.closed:
            self._watch = self.backend.open_watch(self._on_change, self._on_error)
            logger.debug("Started watching %s", self.backend.location)

        unsubscribed = False

        def unsubscribe() -> None:
            nonlocal unsubscribed
            if unsubscribed:
                return
            unsubscribed = True
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass
            if not self._subscribers:
                self._release_watch()

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def watching(self) -> bool:
        return self._watch is not None and not self._watch.closed

    def close(self) -> None:
        """Drop all subscribers and release the watch."""
        self._subscribers.clear()
        self._release_watch()

    def _release_watch(self) -> None:
        if self._watch is not None:
            self._watch.close()
            self._watch = None
            logger.debug("Stopped watching %s", self.backend.location)

    async def _on_change(self) -> None:
        state = await self.read()
        await self._dispatch(state, None)

    async def _on_error(self, error: Exception) -> None:
        logger.error("Installation state watcher error: %s", error)
        await self._dispatch(None, error)

    async def _dispatch(self, state: InstallationState | None, error: Exception | None) -> None:
        for callback in list(self._subscribers):
            try:
                result = callback(state, error)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error("Error in state change callback", exc_info=True)


def _document_key(key: str) -> str:
    """Map a snake_case attribute name to its camelCase document key."""
    if key == "schemaVersion":
        return "version"
    field = InstallationState.model_fields.get(key)
    if field is not None and field.alias:
        return field.alias
    return key
