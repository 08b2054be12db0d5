"""Live service status models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(w.title() for w in parts[1:])


class ServiceState(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    STARTING = "starting"
    STOPPED = "stopped"
    NOT_FOUND = "not_found"


class ServiceStatus(BaseModel):
    """Health of one service as seen by the container runtime right now."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    name: str
    status: ServiceState
    container_name: str
    health_check: bool = False
    uptime: str | None = None
    last_checked: datetime
    error: str | None = None
