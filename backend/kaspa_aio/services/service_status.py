"""Per-service health lookup against the container runtime.

Health checks are used when the container declares one; otherwise a running
container counts as healthy. A missing or stopped runtime never raises: every
service simply reports ``not_found`` with the reason attached.
"""

import logging
import re
from collections.abc import Sequence
from datetime import UTC, datetime

from kaspa_aio.config import settings
from kaspa_aio.core.ttl_cache import TtlCache
from kaspa_aio.models.service_status import ServiceState, ServiceStatus
from kaspa_aio.services.container_runtime import ContainerRuntime, DockerEngineRuntime

logger = logging.getLogger(__name__)

RUNTIME_UNAVAILABLE = "runtime unavailable"

# "Up 2 hours (healthy)" -> "2 hours"
_UPTIME_RE = re.compile(r"^Up\s+(.+?)(?:\s+\([^)]*\))?$")

_HEALTH_ANNOTATIONS = (
    ("(healthy)", ServiceState.HEALTHY),
    ("(unhealthy)", ServiceState.UNHEALTHY),
    ("starting)", ServiceState.STARTING),  # "(health: starting)" or "(starting)"
)


def classify(state: str, status: str) -> tuple[ServiceState, bool]:
    """Map a runtime state/status pair to a service state and health-check flag."""
    if state != "running":
        return ServiceState.STOPPED, False
    for annotation, service_state in _HEALTH_ANNOTATIONS:
        if annotation in status:
            return service_state, True
    # No health check declared, but the container is up
    return ServiceState.HEALTHY, False


def extract_uptime(status: str) -> str | None:
    match = _UPTIME_RE.match(status.strip())
    return match.group(1) if match else None


class ServiceStatusProbe:
    """Answers "how is service X doing" without ever crashing on a missing runtime."""

    def __init__(
        self,
        runtime: ContainerRuntime | None = None,
        availability_ttl: float | None = None,
    ) -> None:
        self.runtime = runtime or DockerEngineRuntime()
        ttl = availability_ttl if availability_ttl is not None else settings.runtime_availability_ttl_seconds
        self._availability: TtlCache[bool] = TtlCache(ttl)

    async def is_runtime_available(self) -> bool:
        """Ping the runtime; the answer is cached for the availability window."""
        cached = self._availability.get()
        if cached is not None:
            return cached.value

        try:
            await self.runtime.ping()
            available = True
        except Exception as e:
            logger.error("Container runtime is not reachable: %s", e)
            logger.debug("Runtime ping failure", exc_info=True)
            available = False

        self._availability.set(available)
        return available

    def clear_cache(self) -> None:
        self._availability.clear()

    async def get_status(self, names: Sequence[str]) -> list[ServiceStatus]:
        """Status for each requested service, in request order.

        Raises:
            TypeError: *names* is not a list/tuple of strings.
        """
        if not isinstance(names, (list, tuple)):
            raise TypeError("names must be a list of service names")
        if not all(isinstance(n, str) and n for n in names):
            raise TypeError("every service name must be a non-empty string")

        if not await self.is_runtime_available():
            now = datetime.now(UTC)
            return [_not_found(name, now, RUNTIME_UNAVAILABLE) for name in names]

        return [await self.get_detail(name) for name in names]

    async def get_detail(self, name: str) -> ServiceStatus:
        """Detailed status of one service, including stopped containers.

        Raises:
            TypeError: *name* is not a string.
            ValueError: *name* is empty.
        """
        if not isinstance(name, str):
            raise TypeError("name must be a non-empty string")
        if not name:
            raise ValueError("name must be a non-empty string")

        last_checked = datetime.now(UTC)
        try:
            containers = await self.runtime.list_containers(name)
        except Exception as e:
            logger.warning("Container lookup for %s failed: %s", name, e)
            return _not_found(name, last_checked, str(e))

        if not containers:
            return _not_found(name, last_checked)

        container = containers[0]
        status, health_check = classify(container.state, container.status)
        uptime = extract_uptime(container.status) if container.state == "running" else None
        return ServiceStatus(
            name=name,
            status=status,
            container_name=container.name,
            health_check=health_check,
            uptime=uptime,
            last_checked=last_checked,
        )


def _not_found(name: str, last_checked: datetime, error: str | None = None) -> ServiceStatus:
    return ServiceStatus(
        name=name,
        status=ServiceState.NOT_FOUND,
        container_name=name,
        health_check=False,
        last_checked=last_checked,
        error=error,
    )
