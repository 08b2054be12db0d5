"""Installation State document models.

The document is shared by the wizard and the dashboard, so the JSON keys are
camelCase while the Python attributes stay snake_case. Unknown keys are kept
(``extra="allow"``) because the file must survive hand edits.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

SCHEMA_VERSION = "1.0.0"

# Keys a stored document must carry to be considered a valid installation.
REQUIRED_FIELDS = (
    "version",
    "installedAt",
    "lastModified",
    "phase",
    "profiles",
    "configuration",
    "services",
    "summary",
)

# Keys the store fills in itself when a caller omits them on write.
STAMPED_FIELDS = ("version", "installedAt", "lastModified")


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(w.title() for w in parts[1:])


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Phase(str, Enum):
    PENDING = "pending"
    INSTALLING = "installing"
    COMPLETE = "complete"
    ERROR = "error"


_PHASE_RANK = {
    Phase.PENDING: 0,
    Phase.INSTALLING: 1,
    Phase.COMPLETE: 2,
    Phase.ERROR: 2,
}


def can_transition(current: Phase, requested: Phase) -> bool:
    """Whether *requested* may follow *current* without a reset.

    Phases only move forward; ``complete`` and ``error`` are terminal.
    """
    if current == requested:
        return True
    if _PHASE_RANK[current] == 2:
        return False
    return _PHASE_RANK[requested] > _PHASE_RANK[current]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
        extra="allow",
    )


class ServiceRecord(_CamelModel):
    """Per-container entry inside the installation state."""

    name: str
    display_name: str | None = None
    profile: str
    running: bool = False
    exists: bool = False
    container_name: str | None = None
    ports: list[int | str] | None = None  # 16110 or "16110:16110"
    has_data: bool = False
    data_size: int | None = None
    config_path: str | None = None


class ProfilesSelection(_CamelModel):
    selected: list[str]
    count: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_count(self) -> ProfilesSelection:
        if len(set(self.selected)) != len(self.selected):
            raise ValueError("profiles.selected contains duplicate profile ids")
        if self.count != len(self.selected):
            raise ValueError(
                f"profiles.count ({self.count}) does not match "
                f"{len(self.selected)} selected profiles"
            )
        return self

    @classmethod
    def of(cls, profile_ids: Iterable[str]) -> ProfilesSelection:
        selected = list(dict.fromkeys(profile_ids))
        return cls(selected=selected, count=len(selected))


class Configuration(_CamelModel):
    """Deployment settings; feature flags beyond these are kept as extra keys."""

    network: str = "mainnet"
    public_node: bool = False


class Summary(_CamelModel):
    total: int = Field(ge=0)
    running: int = Field(ge=0)
    stopped: int = Field(ge=0)
    missing: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_totals(self) -> Summary:
        if self.running + self.stopped + self.missing != self.total:
            raise ValueError(
                f"summary counts ({self.running} running + {self.stopped} stopped + "
                f"{self.missing} missing) do not add up to total {self.total}"
            )
        return self

    @classmethod
    def from_services(cls, services: Iterable[ServiceRecord]) -> Summary:
        services = list(services)
        running = sum(1 for s in services if s.exists and s.running)
        missing = sum(1 for s in services if not s.exists)
        return cls(
            total=len(services),
            running=running,
            stopped=len(services) - running - missing,
            missing=missing,
        )


class InstallationState(_CamelModel):
    """The single persisted document describing what is installed."""

    version: str = Field(
        default=SCHEMA_VERSION,
        validation_alias=AliasChoices("version", "schemaVersion"),
    )
    installed_at: datetime = Field(default_factory=_utcnow)
    last_modified: datetime = Field(default_factory=_utcnow)
    phase: Phase
    profiles: ProfilesSelection
    configuration: Configuration
    services: list[ServiceRecord]
    summary: Summary

    @field_validator("installed_at", "last_modified")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Hand-edited documents may drop the offset
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _check_summary_total(self) -> InstallationState:
        if self.summary.total != len(self.services):
            raise ValueError(
                f"summary.total ({self.summary.total}) does not match "
                f"{len(self.services)} service records"
            )
        return self

    def to_document(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys, as written to disk."""
        return self.model_dump(mode="json", by_alias=True)

    def with_refreshed_summary(self) -> InstallationState:
        """Copy of this state whose summary is recomputed from ``services``."""
        return self.model_copy(update={"summary": Summary.from_services(self.services)})

    def service(self, name: str) -> ServiceRecord | None:
        for record in self.services:
            if record.name == name:
                return record
        return None


def missing_fields(document: Mapping[str, Any], *, for_write: bool = False) -> list[str]:
    """Required top-level keys absent from *document*.

    On write the store stamps ``version``/``installedAt``/``lastModified``
    itself, so they are not required from the caller.
    """
    present = set(document)
    if "schemaVersion" in present:
        present.add("version")
    for field_name, field_info in InstallationState.model_fields.items():
        if field_name in present and field_info.alias:
            present.add(field_info.alias)
    required = [f for f in REQUIRED_FIELDS if not (for_write and f in STAMPED_FIELDS)]
    return [f for f in required if f not in present]
