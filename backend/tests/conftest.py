"""Shared test fixtures for the installation-state core tests."""

import pytest

from kaspa_aio.services.container_runtime import ContainerRuntime, ContainerSummary
from kaspa_aio.state.backends import FileBackend, InMemoryBackend
from kaspa_aio.state.store import StateStore


def make_state_document(**overrides) -> dict:
    """A complete single-profile installation as the installer writes it."""
    document = {
        "phase": "complete",
        "profiles": {"selected": ["kaspa-node"], "count": 1},
        "services": [
            {"name": "kaspa-node", "profile": "kaspa-node", "running": True, "exists": True},
        ],
        "summary": {"total": 1, "running": 1, "stopped": 0, "missing": 0},
        "configuration": {"network": "mainnet", "publicNode": False},
    }
    document.update(overrides)
    return document


@pytest.fixture
def state_document() -> dict:
    return make_state_document()


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def memory_store(memory_backend: InMemoryBackend) -> StateStore:
    store = StateStore(memory_backend)
    yield store
    store.close()


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / ".kaspa-aio" / "installation-state.json"


@pytest.fixture
def file_store(state_path) -> StateStore:
    store = StateStore(FileBackend(state_path, poll_interval=0.05))
    yield store
    store.close()


class FakeRuntime(ContainerRuntime):
    """In-process stand-in for the Docker Engine API."""

    def __init__(self, containers: dict[str, ContainerSummary] | None = None, available: bool = True):
        self.containers = containers or {}
        self.available = available
        self.ping_calls = 0
        self.list_calls: list[str] = []

    async def ping(self) -> None:
        self.ping_calls += 1
        if not self.available:
            raise ConnectionRefusedError("Cannot connect to the Docker daemon")

    async def list_containers(self, name: str) -> list[ContainerSummary]:
        self.list_calls.append(name)
        container = self.containers.get(name)
        return [container] if container is not None else []


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime({
        "kaspa-node": ContainerSummary(name="kaspa-node", state="running", status="Up 2 hours (healthy)"),
        "kasia-app": ContainerSummary(name="kasia-app", state="running", status="Up 5 minutes"),
        "k-social": ContainerSummary(name="k-social", state="exited", status="Exited (1) 3 minutes ago"),
    })
