"""Context passed between the wizard and the dashboard on cross-launch."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(w.title() for w in parts[1:])


class NavigationAction(str, Enum):
    ADD = "add"
    MODIFY = "modify"
    REMOVE = "remove"
    VIEW = "view"


class NavigationContext(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    action: NavigationAction | None = None
    profile: str | None = None
    service: str | None = None
    return_url: str | None = None
    current_state: Any = None
