"""Fresh-install vs. reconfiguration classification.

Everything here is a pure derivation over a StateStore snapshot: nothing is
stored and nothing is written. Callers persist the state returned by
``apply_modification`` themselves.
"""

import logging
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any

from pydantic import BaseModel

from kaspa_aio.core.profiles import PROFILE_CATALOG, ProfileDefinition
from kaspa_aio.models.installation_state import (
    Configuration,
    InstallationState,
    Phase,
    ServiceRecord,
)

logger = logging.getLogger(__name__)


class InstallMode(str, Enum):
    FRESH = "fresh"
    RECONFIGURE = "reconfigure"


class ReconfigurationAction(str, Enum):
    ADD_PROFILES = "add-profiles"
    REMOVE_PROFILES = "remove-profiles"
    MODIFY_PROFILE = "modify-profile"
    OPEN_DASHBOARD = "open-dashboard"


class ModeDecision(BaseModel):
    mode: InstallMode
    reason: str
    options: list[ReconfigurationAction] = []


class ProfileSplit(BaseModel):
    installed: list[str]
    available: list[str]
    unknown: list[str] = []


class ProfileInstallState(str, Enum):
    INSTALLED = "installed"
    PARTIAL = "partial"
    NOT_INSTALLED = "not-installed"


class ProfileStatus(BaseModel):
    id: str
    display_name: str
    install_state: ProfileInstallState
    status: str  # running | partial | stopped
    running_services: int
    total_services: int


class SystemHealth(BaseModel):
    status: str  # healthy | warning | error | unknown
    percentage: int


class ModificationRequest(BaseModel):
    """A change to an installed profile's settings.

    Data is kept unless ``remove_data`` is set. Configuration edits, backups
    and restarts are independent of that decision.
    """

    profile: str | None = None
    services: list[str] | None = None
    configuration: dict[str, Any] = {}
    remove_data: bool = False
    create_backup: bool = False
    restart_services: bool = False


class ModificationResult(BaseModel):
    state: InstallationState
    affected_services: list[str]
    data_preserved: bool
    removed_data_services: list[str]
    configuration_changed: bool
    backup_requested: bool
    restart_requested: bool


class ReconfigurationClassifier:
    """Derives the wizard's mode and the profile split from installation state."""

    def __init__(self, catalog: Sequence[ProfileDefinition] = PROFILE_CATALOG) -> None:
        self.catalog = tuple(catalog)
        self._catalog_ids = [profile.id for profile in self.catalog]

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    @staticmethod
    def is_reconfiguration_mode(state: InstallationState | None) -> bool:
        return (
            state is not None
            and state.phase == Phase.COMPLETE
            and len(state.profiles.selected) > 0
        )

    def detect_mode(self, state: InstallationState | None) -> ModeDecision:
        if state is None:
            return ModeDecision(mode=InstallMode.FRESH, reason="No installation found")
        if self.is_reconfiguration_mode(state):
            return ModeDecision(
                mode=InstallMode.RECONFIGURE,
                reason=f"{state.profiles.count} profile(s) installed",
                options=list(ReconfigurationAction),
            )
        if state.phase != Phase.COMPLETE:
            return ModeDecision(mode=InstallMode.FRESH, reason=f"Installation is {state.phase.value}")
        return ModeDecision(mode=InstallMode.FRESH, reason="No profiles installed")

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def split_profiles(self, state: InstallationState | None) -> ProfileSplit:
        """Installed vs. available profiles; together they cover the catalog exactly."""
        selected = state.profiles.selected if state is not None else []
        installed = [p for p in selected if p in self._catalog_ids]
        unknown = [p for p in selected if p not in self._catalog_ids]
        if unknown:
            logger.warning("Installed profiles not in catalog: %s", ", ".join(unknown))
        available = [p for p in self._catalog_ids if p not in installed]
        return ProfileSplit(installed=installed, available=available, unknown=unknown)

    @staticmethod
    def services_for_profile(state: InstallationState, profile_id: str) -> list[ServiceRecord]:
        return [s for s in state.services if s.profile == profile_id]

    def profile_states(
        self,
        state: InstallationState | None,
        running_names: Iterable[str] | None = None,
    ) -> list[ProfileStatus]:
        """Per-profile install state.

        *running_names* are live container names from the runtime; without
        them the ``running`` flags recorded in the state are used.
        """
        live = set(running_names) if running_names is not None else None
        selected = set(state.profiles.selected) if state is not None else set()

        statuses = []
        for profile in self.catalog:
            services = self.services_for_profile(state, profile.id) if state is not None else []
            if live is None:
                running = sum(1 for s in services if s.running)
            else:
                running = sum(1 for s in services if s.name in live or s.container_name in live)
            total = len(services)

            if profile.id not in selected:
                install_state, status = ProfileInstallState.NOT_INSTALLED, "stopped"
            elif total > 0 and running == total:
                install_state, status = ProfileInstallState.INSTALLED, "running"
            elif running > 0:
                install_state, status = ProfileInstallState.PARTIAL, "partial"
            else:
                install_state, status = ProfileInstallState.INSTALLED, "stopped"

            statuses.append(ProfileStatus(
                id=profile.id,
                display_name=profile.display_name,
                install_state=install_state,
                status=status,
                running_services=running,
                total_services=total,
            ))
        return statuses

    @staticmethod
    def system_health(profile_states: Iterable[ProfileStatus]) -> SystemHealth:
        profile_states = list(profile_states)
        running = sum(p.running_services for p in profile_states)
        total = sum(p.total_services for p in profile_states)
        if total == 0:
            return SystemHealth(status="unknown", percentage=0)
        percentage = round(running / total * 100)
        if percentage == 100:
            status = "healthy"
        elif percentage >= 50:
            status = "warning"
        else:
            status = "error"
        return SystemHealth(status=status, percentage=percentage)

    # ------------------------------------------------------------------
    # Modification
    # ------------------------------------------------------------------

    def apply_modification(
        self, state: InstallationState, request: ModificationRequest
    ) -> ModificationResult:
        """Return the state after *request*, keeping service data unless told otherwise.

        Raises:
            ValueError: the request names a profile that is not installed or
                a service that is not in the state.
        """
        affected = self._affected_services(state, request)

        services = []
        removed = []
        for record in state.services:
            if record.name in affected and request.remove_data:
                services.append(record.model_copy(update={"has_data": False, "data_size": None}))
                if record.has_data:
                    removed.append(record.name)
            else:
                services.append(record)

        configuration = state.configuration
        if request.configuration:
            merged = configuration.model_dump(by_alias=True)
            merged.update(_configuration_keys(request.configuration))
            configuration = Configuration.model_validate(merged)

        new_state = state.model_copy(update={"services": services, "configuration": configuration})
        if removed:
            logger.info("Service data marked for removal: %s", ", ".join(removed))

        return ModificationResult(
            state=new_state,
            affected_services=sorted(affected),
            data_preserved=not request.remove_data,
            removed_data_services=removed,
            configuration_changed=configuration != state.configuration,
            backup_requested=request.create_backup,
            restart_requested=request.restart_services,
        )

    def _affected_services(self, state: InstallationState, request: ModificationRequest) -> set[str]:
        if request.services is not None:
            known = {s.name for s in state.services}
            unknown = [name for name in request.services if name not in known]
            if unknown:
                raise ValueError(f"Unknown services: {', '.join(unknown)}")
            return set(request.services)
        if request.profile is not None:
            if request.profile not in state.profiles.selected:
                raise ValueError(f"Profile '{request.profile}' is not installed")
            return {s.name for s in self.services_for_profile(state, request.profile)}
        return set()


def _configuration_keys(values: dict[str, Any]) -> dict[str, Any]:
    """Map snake_case configuration keys to the camelCase document keys."""
    mapped = {}
    for key, value in values.items():
        field = Configuration.model_fields.get(key)
        mapped[field.alias if field is not None and field.alias else key] = value
    return mapped
