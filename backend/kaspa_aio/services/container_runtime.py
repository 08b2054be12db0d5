"""Container runtime query client.

Only two questions are ever asked of the runtime: "are you there?" and
"which containers carry this name, running or not?". The Docker Engine API
answers both over its unix socket.
"""

import json
import logging
import re
from abc import ABC, abstractmethod

import httpx
from pydantic import BaseModel

from kaspa_aio.config import settings

logger = logging.getLogger(__name__)


class ContainerSummary(BaseModel):
    """One container as reported by the runtime's list call."""

    name: str
    state: str  # "running", "exited", "created", ...
    status: str  # human readable, e.g. "Up 2 hours (healthy)"


class ContainerRuntime(ABC):
    @abstractmethod
    async def ping(self) -> None:
        """Raise if the runtime cannot be reached."""

    @abstractmethod
    async def list_containers(self, name: str) -> list[ContainerSummary]:
        """Containers whose name is exactly *name*, including stopped ones."""


class DockerEngineRuntime(ContainerRuntime):
    """Docker Engine API client over the local unix socket."""

    def __init__(
        self,
        socket_path: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.socket_path = socket_path or settings.docker_socket
        self.timeout = timeout if timeout is not None else settings.docker_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            transport = self._transport or httpx.AsyncHTTPTransport(uds=self.socket_path)
            self._client = httpx.AsyncClient(
                base_url="http://docker",
                transport=transport,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def ping(self) -> None:
        response = await self._get_client().get("/_ping")
        response.raise_for_status()

    async def list_containers(self, name: str) -> list[ContainerSummary]:
        # The name filter is a regex matched against "/<name>"
        filters = json.dumps({"name": [f"^/{re.escape(name)}$"]})
        response = await self._get_client().get(
            "/containers/json", params={"all": "true", "filters": filters},
        )
        response.raise_for_status()

        containers = []
        for item in response.json():
            names = [n.lstrip("/") for n in item.get("Names") or []]
            if name not in names:
                continue
            containers.append(ContainerSummary(
                name=name,
                state=item.get("State", ""),
                status=item.get("Status", ""),
            ))
        return containers

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
