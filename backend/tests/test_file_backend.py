"""Tests for the filesystem state backend and its polling watch."""

import asyncio
import json
from unittest.mock import patch

import pytest

from kaspa_aio.state.backends import FileBackend
from kaspa_aio.state.store import StateStore


async def test_load_missing_file_returns_none(state_path):
    assert await FileBackend(state_path).load() is None


async def test_save_creates_directory_and_file(state_path):
    backend = FileBackend(state_path)
    await backend.save('{"phase": "pending"}\n')

    assert state_path.read_text(encoding="utf-8") == '{"phase": "pending"}\n'
    assert await backend.load() == '{"phase": "pending"}\n'


async def test_save_leaves_no_temp_files(state_path):
    backend = FileBackend(state_path)
    await backend.save("first")
    await backend.save("second")

    assert [p.name for p in state_path.parent.iterdir()] == [state_path.name]


async def test_failed_replace_keeps_previous_document(state_path):
    backend = FileBackend(state_path)
    await backend.save("original")

    with patch("aiofiles.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            await backend.save("replacement")

    assert state_path.read_text(encoding="utf-8") == "original"
    assert [p.name for p in state_path.parent.iterdir()] == [state_path.name]


async def test_remove(state_path):
    backend = FileBackend(state_path)
    assert await backend.remove() is False
    await backend.save("x")
    assert await backend.remove() is True
    assert not state_path.exists()


async def test_store_writes_utf8_indented_json(file_store: StateStore, state_path, state_document):
    state_document["configuration"]["nodeAlias"] = "nœud"
    await file_store.write(state_document)

    text = state_path.read_text(encoding="utf-8")
    assert "nœud" in text
    assert text.endswith("}\n")
    assert json.loads(text)["profiles"]["count"] == 1


class TestPollingWatch:
    async def test_external_change_is_delivered(self, file_store: StateStore, state_path, state_document):
        received = asyncio.Queue()
        file_store.watch(lambda state, error: received.put_nowait((state, error)))
        await asyncio.sleep(0.1)  # let the watcher take its first snapshot

        await file_store.write(state_document)
        state, error = await asyncio.wait_for(received.get(), timeout=2)

        assert error is None
        assert state is not None
        assert state.profiles.selected == ["kaspa-node"]

    async def test_deletion_is_delivered_as_none(self, file_store: StateStore, state_document):
        await file_store.write(state_document)
        received = asyncio.Queue()
        file_store.watch(lambda state, error: received.put_nowait(state))
        await asyncio.sleep(0.1)

        await file_store.reset()
        assert await asyncio.wait_for(received.get(), timeout=2) is None

    async def test_undecodable_file_is_delivered_and_polling_continues(
        self, file_store: StateStore, state_path, state_document
    ):
        received = asyncio.Queue()
        file_store.watch(lambda state, error: received.put_nowait((state, error)))
        await asyncio.sleep(0.1)

        state_path.parent.mkdir(parents=True)
        state_path.write_bytes(b"\xff\xfe garbage")
        assert await asyncio.wait_for(received.get(), timeout=2) == (None, None)
        assert file_store.watching is True

        await file_store.write(state_document)
        state, error = await asyncio.wait_for(received.get(), timeout=2)
        assert error is None
        assert state.profiles.selected == ["kaspa-node"]

    async def test_change_handler_failure_reaches_error_handler(self, state_path):
        errors = asyncio.Queue()
        failure = RuntimeError("re-read failed")

        async def on_change():
            raise failure

        async def on_error(exc):
            errors.put_nowait(exc)

        watch = FileBackend(state_path, poll_interval=0.05).open_watch(on_change, on_error)
        try:
            await asyncio.sleep(0.1)
            state_path.parent.mkdir(parents=True)
            state_path.write_text("first", encoding="utf-8")
            assert await asyncio.wait_for(errors.get(), timeout=2) is failure
            assert watch.closed is False

            state_path.write_text("second, longer", encoding="utf-8")
            assert await asyncio.wait_for(errors.get(), timeout=2) is failure
        finally:
            watch.close()

    async def test_unsubscribe_stops_polling(self, file_store: StateStore):
        unsubscribe = file_store.watch(lambda state, error: None)
        assert file_store.watching is True

        unsubscribe()
        await asyncio.sleep(0)
        assert file_store.watching is False
