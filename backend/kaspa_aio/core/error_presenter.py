"""User-facing fault messages shared by the wizard and the dashboard.

``present`` is total: any category, known, unknown or missing, yields a
displayable result, and the underlying detail is always logged.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from kaspa_aio.exceptions import (
    InvalidPhaseTransitionError,
    NoInstallationError,
    StateConflictError,
    StateValidationError,
)

logger = logging.getLogger(__name__)


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(w.title() for w in parts[1:])


class FaultCategory(str, Enum):
    NO_INSTALL_FOUND = "no-install-found"
    RUNTIME_UNAVAILABLE = "runtime-unavailable"
    DEPENDENT_SERVICE_UNAVAILABLE = "dependent-service-unavailable"
    SERVICE_NOT_FOUND = "service-not-found"
    STATE_FILE_CORRUPT = "state-file-corrupt"
    GENERIC_API_FAILURE = "generic-api-failure"


class RecoveryAction(str, Enum):
    SHOW_WIZARD_LINK = "show-wizard-link"
    RETRY_ON_INTERVAL = "retry-on-interval"
    RETRY_WITH_FALLBACK = "retry-with-fallback"
    SHOW_UNAVAILABLE_PLACEHOLDER = "show-unavailable-placeholder"
    OFFER_RECONFIGURATION = "offer-reconfiguration"
    RETRY = "retry"


class ErrorDisplay(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    user_message: str
    recovery_action: RecoveryAction | None = None
    console_logged: bool = True
    category: str | None = None
    remediation_steps: list[str] = []
    placeholder: str | None = None


@dataclass(frozen=True)
class _CategoryInfo:
    user_message: str
    recovery_action: RecoveryAction
    log_level: int
    log_message: str


_CATEGORIES: dict[FaultCategory, _CategoryInfo] = {
    FaultCategory.NO_INSTALL_FOUND: _CategoryInfo(
        "No installation detected. Launch the Installation Wizard to get started.",
        RecoveryAction.SHOW_WIZARD_LINK,
        logging.INFO,
        "No installation state found",
    ),
    FaultCategory.RUNTIME_UNAVAILABLE: _CategoryInfo(
        "Docker is not accessible. Please ensure Docker is running.",
        RecoveryAction.RETRY_ON_INTERVAL,
        logging.ERROR,
        "Container runtime connection failed",
    ),
    FaultCategory.DEPENDENT_SERVICE_UNAVAILABLE: _CategoryInfo(
        "Kaspa Node: Not Available. Check if the container is running.",
        RecoveryAction.RETRY_WITH_FALLBACK,
        logging.WARNING,
        "Dependent service unreachable on all ports",
    ),
    FaultCategory.SERVICE_NOT_FOUND: _CategoryInfo(
        "Service not found in Docker.",
        RecoveryAction.SHOW_UNAVAILABLE_PLACEHOLDER,
        logging.WARNING,
        "Container not found",
    ),
    FaultCategory.STATE_FILE_CORRUPT: _CategoryInfo(
        "Configuration file is corrupted. Please reconfigure.",
        RecoveryAction.OFFER_RECONFIGURATION,
        logging.ERROR,
        "Installation state could not be parsed",
    ),
    FaultCategory.GENERIC_API_FAILURE: _CategoryInfo(
        "Unable to fetch data. Retrying...",
        RecoveryAction.RETRY,
        logging.ERROR,
        "API request failed",
    ),
}

UNKNOWN_FAULT_MESSAGE = "An unexpected error occurred. Please try again."

RUNTIME_REMEDIATION_STEPS = [
    "Check if Docker is installed and running",
    "Verify the Docker daemon is accessible",
    "Try restarting the Docker service",
    "Check Docker permissions for the current user",
]


class ErrorPresenter:
    """Maps fault categories to display results and logs the detail behind each."""

    def present(self, category: FaultCategory | str | None, details: Any = None) -> ErrorDisplay:
        if category is None:
            category = FaultCategory.GENERIC_API_FAILURE
        try:
            fault = FaultCategory(category)
        except ValueError:
            logger.error("Unknown fault category %r: %s", category, details)
            return ErrorDisplay(
                user_message=UNKNOWN_FAULT_MESSAGE,
                recovery_action=RecoveryAction.RETRY,
                category=str(category),
            )

        entry = _CATEGORIES[fault]
        logger.log(entry.log_level, "%s: %s", entry.log_message, details)
        return ErrorDisplay(
            user_message=entry.user_message,
            recovery_action=entry.recovery_action,
            category=fault.value,
        )

    def show_service_unavailable(self, service_name: str) -> ErrorDisplay:
        logger.warning("Service unavailable: %s", service_name)
        return ErrorDisplay(
            user_message=f"{service_name}: Service Unavailable",
            recovery_action=RecoveryAction.SHOW_UNAVAILABLE_PLACEHOLDER,
            category=FaultCategory.SERVICE_NOT_FOUND.value,
            placeholder=f"{service_name}\nService Unavailable\nCheck if the container is running",
        )

    def show_runtime_unavailable(self, details: Any = None) -> ErrorDisplay:
        display = self.present(FaultCategory.RUNTIME_UNAVAILABLE, details)
        return display.model_copy(update={"remediation_steps": list(RUNTIME_REMEDIATION_STEPS)})

    def show_api_error(self, operation: str, error: BaseException | None = None) -> ErrorDisplay:
        return self.present(
            FaultCategory.GENERIC_API_FAILURE,
            {"operation": operation, "error": str(error) if error else "Unknown error"},
        )

    def show_state_file_error(self, issue: str, error: BaseException | None = None) -> ErrorDisplay:
        category = FaultCategory.NO_INSTALL_FOUND if issue == "not_found" else FaultCategory.STATE_FILE_CORRUPT
        return self.present(category, {"issue": issue, "error": str(error) if error else "Unknown error"})

    @staticmethod
    def categories() -> dict[FaultCategory, tuple[str, RecoveryAction]]:
        return {fault: (entry.user_message, entry.recovery_action) for fault, entry in _CATEGORIES.items()}

    @staticmethod
    def category_for_exception(error: BaseException) -> FaultCategory:
        if isinstance(error, (NoInstallationError, FileNotFoundError)):
            return FaultCategory.NO_INSTALL_FOUND
        # Rejected writes are not a damaged file
        if isinstance(error, (InvalidPhaseTransitionError, StateConflictError)):
            return FaultCategory.GENERIC_API_FAILURE
        if isinstance(error, (StateValidationError, ValueError)):
            return FaultCategory.STATE_FILE_CORRUPT
        if isinstance(error, (httpx.ConnectError, httpx.TimeoutException)):
            return FaultCategory.DEPENDENT_SERVICE_UNAVAILABLE
        return FaultCategory.GENERIC_API_FAILURE
